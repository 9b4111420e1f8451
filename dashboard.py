# dashboard.py - chart builders and KPI tiles for the Streamlit app

import streamlit as st
import plotly.express as px
import plotly.graph_objects as go
import pandas as pd

TXN_COLUMNS = ["ID", "Date", "Type", "Category", "Description", "Amount"]

def transactions_to_df(txns):
    """
    Flattens Transaction rows into a dataframe for tables and charts.
    """
    if not txns:
        return pd.DataFrame(columns=TXN_COLUMNS)

    df = pd.DataFrame([{
        "ID": t.id,
        "Date": t.date,
        "Type": t.type,
        "Category": t.category or "Other",
        "Description": t.description or "",
        "Amount": t.amount,
    } for t in txns])
    df["Date"] = pd.to_datetime(df["Date"])
    df["Month"] = df["Date"].dt.to_period("M").astype(str)
    return df

def kpis(summary: dict):
    """
    Income, expense and balance tiles.
    """
    col1, col2, col3 = st.columns(3)
    col1.metric("💰 Income", f"${summary['income']:,.2f}")
    col2.metric("💸 Expenses", f"${summary['expense']:,.2f}")
    balance = summary["balance"]
    col3.metric("🏦 Balance", f"${balance:,.2f}", delta=f"{balance:,.2f}", delta_color="normal")

def cat_spend(category_stats):
    """
    Donut chart of expense totals by category.
    """
    df = pd.DataFrame(category_stats, columns=["type", "category", "total", "count"])
    spend_df = df[df["type"] == "expense"]

    fig = px.pie(spend_df, values="total", names="category", hole=0.4, title="Spending by Category")
    fig.update_traces(textposition="inside", textinfo="percent+label")
    return fig

def income_vs_expense_monthly(monthly_stats):
    """
    Bar chart of Income vs Expenses per month.
    """
    df = pd.DataFrame(monthly_stats, columns=["month", "type", "total"])
    if df.empty:
        monthly = pd.DataFrame(columns=["month", "income", "expense"])
    else:
        monthly = (
            df.pivot_table(index="month", columns="type", values="total", aggfunc="sum", fill_value=0)
            .reindex(columns=["income", "expense"], fill_value=0)
            .reset_index()
            .sort_values("month")
        )

    fig = go.Figure()
    fig.add_trace(go.Bar(x=monthly["month"], y=monthly["income"], name="Income", marker_color="#4CAF50"))
    fig.add_trace(go.Bar(x=monthly["month"], y=monthly["expense"], name="Expenses", marker_color="#FF5252"))

    fig.update_layout(barmode="group", title="Income vs Expenses Trend", height=400)
    return fig

def category_breakdown(category_stats):
    """
    Table of totals per category, with the share of its type's total.
    """
    df = pd.DataFrame(category_stats, columns=["type", "category", "total", "count"])
    if df.empty:
        return df.assign(share=pd.Series(dtype=float))
    type_totals = df.groupby("type")["total"].transform("sum")
    df["share"] = (df["total"] / type_totals * 100).round(1)
    return df.sort_values(["type", "total"], ascending=[True, False]).reset_index(drop=True)
