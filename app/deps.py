from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db
from .directory import find_vendor_by_user
from .event_log import EventLog
from .models import Vendor
from .rbac import vendor_user
from .workflow import AssignmentWorkflow


def get_event_log(request: Request) -> EventLog:
    return request.app.state.event_log


def get_workflow(
    request: Request,
    db: AsyncSession = Depends(get_db),
    event_log: EventLog = Depends(get_event_log),
) -> AssignmentWorkflow:
    return AssignmentWorkflow(db, event_log, request.app.state.notifier)


async def current_vendor(
    payload: dict = Depends(vendor_user),
    db: AsyncSession = Depends(get_db),
) -> Vendor:
    return await find_vendor_by_user(db, payload["sub"])
