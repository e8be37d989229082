from fastapi import APIRouter
from app.api.routes import admin, balance, transactions

api_router = APIRouter()
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(balance.router, tags=["balance"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
