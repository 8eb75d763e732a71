# FILE: hims_billing/services/room_occupancy.py
from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from hims_billing.core.errors import ConflictError, NotFoundError
from hims_billing.models.ipd import Room

logger = logging.getLogger(__name__)


def occupy_bed(db: Session, room_id: int) -> None:
    res = db.execute(
        update(Room).where(
            Room.id == room_id,
            Room.occupied_beds < Room.bed_count,
        ).values(occupied_beds=Room.occupied_beds + 1).execution_options(
            synchronize_session=False))
    if res.rowcount != 1:
        if not db.get(Room, room_id):
            raise NotFoundError("Room not found")
        raise ConflictError("No vacant bed in room")
    _refresh(db, room_id)


def release_bed(db: Session, room_id: int) -> bool:
    """
    Decrement occupied_beds by one, never below zero.
    Returns False (and logs) when the counter was already zero.
    """
    res = db.execute(
        update(Room).where(
            Room.id == room_id,
            Room.occupied_beds > 0,
        ).values(occupied_beds=Room.occupied_beds - 1).execution_options(
            synchronize_session=False))
    if res.rowcount != 1:
        logger.warning("Room %s: release skipped, occupied_beds already 0",
                       room_id)
        return False
    _refresh(db, room_id)
    return True


def _refresh(db: Session, room_id: int) -> None:
    room = db.get(Room, room_id)
    if room is not None:
        db.refresh(room)
