"""
Main API router aggregator
"""
from fastapi import APIRouter

from visaforge.api.v1.endpoints import (
    assistant,
    billing,
    cases,
    contact,
    evidence,
    health,
    interview,
    packets,
    reminders,
    tasks,
    translate,
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(cases.router, prefix="/cases", tags=["Cases"])
api_router.include_router(evidence.router, prefix="/evidence", tags=["Evidence"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(packets.router, prefix="/packets", tags=["Packets"])
api_router.include_router(billing.router, prefix="/billing", tags=["Billing"])
api_router.include_router(interview.router, prefix="/interview", tags=["Interview"])
api_router.include_router(assistant.router, prefix="/assistant", tags=["Assistant"])
api_router.include_router(translate.router, prefix="/translate", tags=["Translation"])
api_router.include_router(reminders.router, prefix="/reminders", tags=["Reminders"])
api_router.include_router(contact.router, prefix="/contact", tags=["Contact"])
