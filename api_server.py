"""REST API for the finance tracker, served with FastAPI."""

import logging
import os
import tempfile
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

import auth
import categories
import storage
import transactions
from database import SessionLocal, User, get_db, init_db
from document_parser import ExtractionError, UnsupportedDocumentError, extract_text
from errors import AuthError, NotFoundError, ValidationError
from receipt_parser import interpret, parse_transaction_history

load_dotenv()

logger = logging.getLogger(__name__)

SESSION_SECRET = os.getenv("SESSION_SECRET", "fallback-secret-key")
SESSION_MAX_AGE = 24 * 60 * 60
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:8501")
HTTPS_ONLY = os.getenv("SESSION_HTTPS_ONLY", "false").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        categories.seed_default_categories(db)
    finally:
        db.close()
    yield


app = FastAPI(title="Personal Finance Tracker API", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET,
    max_age=SESSION_MAX_AGE,
    https_only=HTTPS_ONLY,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user_id = request.session.get("user_id")
    user = auth.get_user(db, user_id) if user_id else None
    if not user:
        request.session.clear()
        raise HTTPException(401, "Authentication required")
    return user


def require_no_auth(request: Request):
    if request.session.get("user_id"):
        raise HTTPException(400, "Already authenticated")


# --- Error handling ---

@app.exception_handler(ValidationError)
async def _validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AuthError)
async def _auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def _not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# --- Schemas ---

class UserOut(BaseModel):
    id: int
    username: str
    email: str


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    message: str
    user: UserOut


class CategoryOut(BaseModel):
    id: int
    name: str
    type: str
    color: Optional[str] = None


class CategoryCreate(BaseModel):
    name: str
    type: str
    color: Optional[str] = None


class TransactionOut(BaseModel):
    id: int
    type: str
    amount: float
    category: str
    description: str = ""
    date: Optional[str] = None
    receipt_path: Optional[str] = None


class TransactionUpdate(BaseModel):
    type: Optional[str] = None
    amount: Optional[float] = None
    category: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None


class CategoryStat(BaseModel):
    type: str
    category: str
    total: float
    count: int


class MonthlyStat(BaseModel):
    month: str
    type: str
    total: float


class StatsResponse(BaseModel):
    stats: List[CategoryStat]
    monthly_stats: List[MonthlyStat]


class ExtractedData(BaseModel):
    amount: Optional[float] = None
    description: str = ""
    category: str = "Other"


class ReceiptResponse(BaseModel):
    message: str
    extracted_text: str
    extracted_data: ExtractedData
    file_path: str


class StatementLine(BaseModel):
    date: str
    amount: float
    description: str
    type: str
    category: str


class StatementResponse(BaseModel):
    message: str
    transactions: List[StatementLine] = Field(default_factory=list)


# --- Upload helpers ---

def _read_upload(upload: Optional[UploadFile]) -> bytes:
    if upload is None or not upload.filename:
        raise HTTPException(400, "No file uploaded")
    if not storage.allowed_receipt_type(upload.content_type):
        raise HTTPException(400, "Only images and PDF files are allowed")
    if upload.size is not None and upload.size > storage.MAX_RECEIPT_BYTES:
        raise HTTPException(413, "File too large")
    content = upload.file.read(storage.MAX_RECEIPT_BYTES + 1)
    if not content:
        raise HTTPException(400, "Uploaded file is empty")
    if len(content) > storage.MAX_RECEIPT_BYTES:
        raise HTTPException(413, "File too large")
    return content


def _store_upload(upload: UploadFile, content: bytes) -> str:
    name = storage.build_receipt_name(upload.filename)
    try:
        return storage.save_receipt(name, content)
    except storage.StorageError as exc:
        raise HTTPException(500, "Failed to store receipt") from exc


def _extract_upload_text(upload: UploadFile, content: bytes) -> str:
    """Run OCR/PDF extraction on a temporary copy of the upload."""
    suffix = Path(upload.filename or "").suffix
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / f"upload{suffix}"
        path.write_bytes(content)
        return extract_text(path, upload.content_type)


# --- Auth ---

@app.post("/api/auth/register", response_model=AuthResponse, status_code=201,
          dependencies=[Depends(require_no_auth)])
def register(req: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    user = auth.register_user(db, req.username, req.email, req.password)
    request.session["user_id"] = user.id
    return AuthResponse(message="User registered successfully", user=UserOut(**auth.public_user(user)))


@app.post("/api/auth/login", response_model=AuthResponse, dependencies=[Depends(require_no_auth)])
def login(req: LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = auth.authenticate(db, req.email, req.password)
    if not user:
        raise HTTPException(401, "Invalid email or password.")
    request.session["user_id"] = user.id
    return AuthResponse(message="Logged in successfully", user=UserOut(**auth.public_user(user)))


@app.post("/api/auth/logout")
async def logout(request: Request, user: User = Depends(get_current_user)):
    request.session.clear()
    return {"message": "Logged out successfully"}


@app.get("/api/auth/me")
async def me(user: User = Depends(get_current_user)):
    return {"user": auth.public_user(user)}


# --- Categories ---

@app.get("/api/categories")
def list_categories(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"categories": [categories.category_to_dict(c) for c in categories.get_categories(db)]}


@app.get("/api/categories/{category_type}")
def list_categories_by_type(category_type: str, user: User = Depends(get_current_user),
                            db: Session = Depends(get_db)):
    found = categories.get_categories_by_type(db, category_type)
    return {"categories": [categories.category_to_dict(c) for c in found]}


@app.post("/api/categories", status_code=201)
def add_category(req: CategoryCreate, user: User = Depends(get_current_user),
                 db: Session = Depends(get_db)):
    category = categories.create_category(db, req.name, req.type, req.color)
    return {"message": "Category created", "category": CategoryOut(**categories.category_to_dict(category))}


@app.delete("/api/categories/{category_id}")
def remove_category(category_id: int, user: User = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    categories.delete_category(db, category_id)
    return {"message": "Category deleted"}


# --- Transactions ---

@app.post("/api/transactions", status_code=201)
def create_transaction(
    type: str = Form(None),
    amount: str = Form(None),
    category: str = Form(None),
    description: str = Form(""),
    date: str = Form(None),
    receipt: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    receipt_path = None
    if receipt is not None and receipt.filename:
        content = _read_upload(receipt)
        receipt_path = _store_upload(receipt, content)

    txn = transactions.add_transaction(
        db, user.id, type=type, amount=amount, category=category, date=date,
        description=description, receipt_path=receipt_path,
    )
    return {
        "message": "Transaction added successfully",
        "transaction": TransactionOut(**transactions.transaction_to_dict(txn)),
    }


@app.get("/api/transactions")
def list_transactions(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    txns = transactions.get_transactions(db, user.id, start_date, end_date)
    return {"transactions": [transactions.transaction_to_dict(t) for t in txns]}


@app.get("/api/transactions/stats", response_model=StatsResponse)
def transaction_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return transactions.get_transaction_stats(db, user.id)


@app.post("/api/transactions/process-receipt", response_model=ReceiptResponse)
def process_receipt(receipt: Optional[UploadFile] = File(None), user: User = Depends(get_current_user)):
    content = _read_upload(receipt)
    file_path = _store_upload(receipt, content)
    try:
        text = _extract_upload_text(receipt, content)
    except UnsupportedDocumentError as exc:
        raise HTTPException(400, "Unsupported file type") from exc
    except ExtractionError as exc:
        raise HTTPException(500, "Failed to process receipt") from exc

    data = interpret(text)
    return ReceiptResponse(
        message="Receipt processed successfully",
        extracted_text=text,
        extracted_data=ExtractedData(**data.to_dict()),
        file_path=file_path,
    )


@app.post("/api/transactions/parse-statement", response_model=StatementResponse)
def parse_statement(statement: Optional[UploadFile] = File(None), user: User = Depends(get_current_user)):
    content = _read_upload(statement)
    try:
        text = _extract_upload_text(statement, content)
    except UnsupportedDocumentError as exc:
        raise HTTPException(400, "Unsupported file type") from exc
    except ExtractionError as exc:
        raise HTTPException(500, "Failed to process statement") from exc

    found = parse_transaction_history(text)
    return StatementResponse(message=f"Found {len(found)} transactions", transactions=found)


@app.get("/api/transactions/{transaction_id}")
def read_transaction(transaction_id: int, user: User = Depends(get_current_user),
                     db: Session = Depends(get_db)):
    txn = transactions.get_transaction(db, user.id, transaction_id)
    return {"transaction": transactions.transaction_to_dict(txn)}


@app.patch("/api/transactions/{transaction_id}")
def edit_transaction(transaction_id: int, req: TransactionUpdate,
                     user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    fields = req.model_dump(exclude_unset=True)
    txn = transactions.update_transaction(db, user.id, transaction_id, **fields)
    return {"message": "Transaction updated", "transaction": transactions.transaction_to_dict(txn)}


@app.delete("/api/transactions/{transaction_id}")
def remove_transaction(transaction_id: int, user: User = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    transactions.delete_transaction(db, user.id, transaction_id)
    return {"message": "Transaction deleted"}


@app.get("/api/health")
async def health():
    return {"status": "OK", "message": "Personal Finance Tracker API is running"}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("api_server:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
