"""SQLAlchemy store - Implementación de los repositorios sobre SQL.

Tablas tipadas por entidad; los upserts son portables (UPDATE y, si no
afectó filas, INSERT) para funcionar igual en SQLite, PostgreSQL o
SQL Server.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    and_,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from common.db import ping as ping_engine

from ...core.domain.enums import OccupantType, PowerStatus, RoomStatus
from ...core.domain.location import LocationKey
from ...core.domain.records import (
    ActivityLogEntry,
    AttendanceRecord,
    DenialLogEntry,
    DeviceRecord,
    PresenceRecord,
)
from ...core.domain.room_state import RoomState, RoomUpdate
from ...core.errors import PersistenceFailure
from .repositories import PersistenceGateway

logger = logging.getLogger(__name__)

metadata = MetaData()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


rooms = Table(
    "rooms",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("hotel_id", String(16), nullable=False, index=True),
    Column("number", String(16), nullable=False),
    Column("status", String(16), nullable=False, default=RoomStatus.VACANT.value),
    Column("occupant_type", String(64), nullable=True),
    Column("has_master_key", Boolean, nullable=False, default=False),
    Column("has_low_power", Boolean, nullable=False, default=False),
    Column("power_status", String(8), nullable=False, default=PowerStatus.OFF.value),
    Column("created_at", DateTime(timezone=True), default=_utcnow),
    Column("updated_at", DateTime(timezone=True), default=_utcnow, onupdate=_utcnow),
    UniqueConstraint("hotel_id", "number", name="uq_rooms_hotel_number"),
)

devices = Table(
    "devices",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("device_id", String(64), nullable=False, unique=True),
    Column("hotel_id", String(16), index=True),
    Column("room", String(16)),
    Column("building", String(32)),
    Column("floor_number", String(16)),
    Column("ssid", String(64)),
    Column("mqtt_server", String(255)),
    Column("mqtt_port", Integer),
    Column("last_seen", DateTime(timezone=True)),
    Column("firmware_version", String(64)),
    Column("uptime", Integer),
    Column("free_heap", Integer),
    Column("wifi_signal", Integer),
    Column("is_online", Boolean, default=True),
    Column("updated_at", DateTime(timezone=True), default=_utcnow, onupdate=_utcnow),
)

presences = Table(
    "presences",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("hotel_id", String(16), nullable=False),
    Column("card_uid", String(64), nullable=False),
    Column("room", String(16), nullable=False),
    Column("building", String(32)),
    Column("floor_number", String(16)),
    Column("is_present", Boolean, nullable=False),
    Column("last_detected", DateTime(timezone=True)),
    Column("presence_duration", Float, default=0),
    Column("card_absent_count", Integer, default=0),
    Column("device_id", String(64)),
    Column("updated_at", DateTime(timezone=True), default=_utcnow, onupdate=_utcnow),
    UniqueConstraint("hotel_id", "card_uid", "room", name="uq_presences_card_room"),
)

activities = Table(
    "activities",
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("id", String(64), nullable=False),
    Column("hotel_id", String(16), nullable=False, index=True),
    Column("type", String(16), nullable=False),
    Column("action", String(512), nullable=False),
    Column("user", String(64)),
    Column("time", String(64)),
    Column("created_at", DateTime(timezone=True), default=_utcnow),
)

attendances = Table(
    "attendances",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("hotel_id", String(16), nullable=False, index=True),
    Column("card_uid", String(64)),
    Column("role", String(32)),
    Column("check_in", String(64)),
    Column("check_out", String(64)),
    Column("duration", Float),
    Column("room", String(16)),
    Column("building", String(32)),
    Column("floor_number", String(16)),
    Column("timestamp", String(64)),
    Column("is_checked_in", Boolean),
    Column("device_info", JSON),
    Column("extra", JSON),
    Column("created_at", DateTime(timezone=True), default=_utcnow),
)

denials = Table(
    "denials",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("hotel_id", String(16), nullable=False, index=True),
    Column("room", String(16)),
    Column("building", String(32)),
    Column("floor_number", String(16)),
    Column("card_uid", String(64)),
    Column("role", String(32)),
    Column("denial_reason", String(255)),
    Column("attempted_at", String(64)),
    Column("payload", JSON),
    Column("created_at", DateTime(timezone=True), default=_utcnow),
)


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)


def _guarded(collection: str):
    """Convierte errores de SQLAlchemy en PersistenceFailure."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except SQLAlchemyError as e:
                raise PersistenceFailure(collection, e) from e
        return wrapper
    return decorator


def _upsert(
    engine: Engine,
    table: Table,
    key: Dict[str, Any],
    values: Dict[str, Any],
    insert_defaults: Optional[Dict[str, Any]] = None,
) -> None:
    """UPDATE por clave; INSERT si no había fila.

    Two writers inserting the same new key race on the unique constraint;
    the loser retries as an UPDATE, so the last write wins.
    """
    where = and_(*(table.c[k] == v for k, v in key.items()))
    for attempt in range(2):
        try:
            with engine.begin() as conn:
                result = conn.execute(update(table).where(where).values(**values))
                if result.rowcount == 0:
                    conn.execute(insert(table).values(**{**(insert_defaults or {}), **key, **values}))
            return
        except IntegrityError:
            if attempt:
                raise
            logger.debug("[PERSISTENCE] Concurrent insert on %s %s, retrying as update", table.name, key)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _location_columns(location: LocationKey) -> Dict[str, Any]:
    return {
        "hotel_id": location.hotel_id,
        "room": location.room_number,
        "building": location.building,
        "floor_number": location.floor_number,
    }


class SqlRoomRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    @_guarded("rooms")
    def get(self, hotel_id: str, number: str) -> Optional[RoomState]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(rooms).where(and_(rooms.c.hotel_id == hotel_id, rooms.c.number == number))
            ).mappings().first()
        return self._to_state(row) if row else None

    @_guarded("rooms")
    def apply_update(self, location: LocationKey, update: RoomUpdate) -> None:
        _upsert(
            self._engine,
            rooms,
            key={"hotel_id": location.hotel_id, "number": location.room_number},
            values=update.to_fields(),
            insert_defaults={"has_master_key": False, "has_low_power": False},
        )

    @_guarded("rooms")
    def upsert(self, state: RoomState) -> None:
        _upsert(
            self._engine,
            rooms,
            key={"hotel_id": state.hotel_id, "number": state.number},
            values={
                "status": state.status.value,
                "occupant_type": state.occupant_type.value if state.occupant_type else None,
                "has_master_key": state.has_master_key,
                "has_low_power": state.has_low_power,
                "power_status": state.power_status.value,
            },
        )

    @_guarded("rooms")
    def list_by_hotel(self, hotel_id: str) -> List[RoomState]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(rooms).where(rooms.c.hotel_id == hotel_id).order_by(rooms.c.number)
            ).mappings().all()
        return [self._to_state(r) for r in rows]

    @staticmethod
    def _to_state(row) -> RoomState:
        return RoomState(
            hotel_id=row["hotel_id"],
            number=row["number"],
            status=RoomStatus(row["status"]),
            occupant_type=OccupantType(row["occupant_type"]) if row["occupant_type"] else None,
            has_master_key=bool(row["has_master_key"]),
            power_status=PowerStatus(row["power_status"]),
            has_low_power=bool(row["has_low_power"]),
        )


class SqlDeviceRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    @_guarded("devices")
    def upsert(self, record: DeviceRecord) -> None:
        _upsert(
            self._engine,
            devices,
            key={"device_id": record.device_id},
            values={
                **_location_columns(record.location),
                "ssid": record.ssid,
                "mqtt_server": record.mqtt_server,
                "mqtt_port": record.mqtt_port,
                "last_seen": record.last_seen,
                "firmware_version": record.firmware_version,
                "uptime": record.uptime,
                "free_heap": record.free_heap,
                "wifi_signal": record.wifi_signal,
                "is_online": record.is_online,
            },
        )

    @_guarded("devices")
    def list_by_hotel(self, hotel_id: str) -> List[dict]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(devices).where(devices.c.hotel_id == hotel_id).order_by(devices.c.device_id)
            ).mappings().all()
        return [
            {
                "deviceId": r["device_id"],
                "hotelId": r["hotel_id"],
                "room": r["room"],
                "building": r["building"],
                "floorNumber": r["floor_number"],
                "ssid": r["ssid"],
                "mqttServer": r["mqtt_server"],
                "mqttPort": r["mqtt_port"],
                "lastSeen": _iso(r["last_seen"]),
                "firmwareVersion": r["firmware_version"],
                "uptime": r["uptime"],
                "freeHeap": r["free_heap"],
                "wifiSignal": r["wifi_signal"],
                "isOnline": bool(r["is_online"]),
            }
            for r in rows
        ]


class SqlPresenceRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    @_guarded("presences")
    def upsert(self, record: PresenceRecord) -> None:
        location = record.location
        _upsert(
            self._engine,
            presences,
            key={"hotel_id": location.hotel_id, "card_uid": record.card_uid, "room": location.room_number},
            values={
                "building": location.building,
                "floor_number": location.floor_number,
                "is_present": record.is_present,
                "last_detected": record.last_detected,
                "presence_duration": record.presence_duration,
                "card_absent_count": record.card_absent_count,
                "device_id": record.device_id,
            },
        )

    @_guarded("presences")
    def get(self, hotel_id: str, card_uid: str, room: str) -> Optional[dict]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(presences).where(
                    and_(
                        presences.c.hotel_id == hotel_id,
                        presences.c.card_uid == card_uid,
                        presences.c.room == room,
                    )
                )
            ).mappings().first()
        if row is None:
            return None
        return {
            "hotelId": row["hotel_id"],
            "card_uid": row["card_uid"],
            "room": row["room"],
            "building": row["building"],
            "floorNumber": row["floor_number"],
            "isPresent": bool(row["is_present"]),
            "lastDetected": _iso(row["last_detected"]),
            "presenceDuration": row["presence_duration"],
            "cardAbsentCount": row["card_absent_count"],
            "deviceId": row["device_id"],
        }


class SqlActivityRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    @_guarded("activities")
    def append(self, entry: ActivityLogEntry) -> dict:
        created_at = _utcnow()
        with self._engine.begin() as conn:
            conn.execute(
                insert(activities).values(
                    id=entry.id,
                    hotel_id=entry.hotel_id,
                    type=entry.type.value,
                    action=entry.action,
                    user=entry.actor,
                    time=entry.time,
                    created_at=created_at,
                )
            )
        return {**entry.to_dict(), "createdAt": created_at.isoformat()}

    @_guarded("activities")
    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(activities)
                .where(activities.c.hotel_id == hotel_id)
                .order_by(activities.c.pk.desc())
                .limit(limit)
            ).mappings().all()
        return [
            {
                "hotelId": r["hotel_id"],
                "id": r["id"],
                "type": r["type"],
                "action": r["action"],
                "user": r["user"],
                "time": r["time"],
                "createdAt": _iso(r["created_at"]),
            }
            for r in rows
        ]


class SqlAttendanceRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    @_guarded("attendances")
    def append(self, record: AttendanceRecord) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                insert(attendances).values(
                    **_location_columns(record.location),
                    card_uid=record.card_uid,
                    role=record.role,
                    check_in=record.check_in,
                    check_out=record.check_out,
                    duration=record.duration,
                    timestamp=record.timestamp,
                    is_checked_in=record.is_checked_in,
                    device_info=record.device_info,
                    extra=record.extra,
                )
            )

    @_guarded("attendances")
    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(attendances)
                .where(attendances.c.hotel_id == hotel_id)
                .order_by(attendances.c.id.desc())
                .limit(limit)
            ).mappings().all()
        return [
            {
                **(r["extra"] or {}),
                "hotelId": r["hotel_id"],
                "card_uid": r["card_uid"],
                "role": r["role"],
                "check_in": r["check_in"],
                "check_out": r["check_out"],
                "duration": r["duration"],
                "room": r["room"],
                "building": r["building"],
                "floorNumber": r["floor_number"],
                "timestamp": r["timestamp"],
                "isCheckedIn": bool(r["is_checked_in"]),
                "deviceInfo": r["device_info"],
                "createdAt": _iso(r["created_at"]),
            }
            for r in rows
        ]


class SqlDenialRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    @_guarded("denials")
    def append(self, entry: DenialLogEntry) -> None:
        payload = entry.payload
        with self._engine.begin() as conn:
            conn.execute(
                insert(denials).values(
                    **_location_columns(entry.location),
                    card_uid=_text(payload.get("card_uid")),
                    role=_text(payload.get("role")),
                    denial_reason=_text(payload.get("denial_reason")),
                    attempted_at=_text(payload.get("attempted_at")),
                    payload=payload,
                )
            )

    @_guarded("denials")
    def recent(self, hotel_id: str, limit: int = 100) -> List[dict]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(denials)
                .where(denials.c.hotel_id == hotel_id)
                .order_by(denials.c.id.desc())
                .limit(limit)
            ).mappings().all()
        return [
            {
                **(r["payload"] or {}),
                "hotelId": r["hotel_id"],
                "room": r["room"],
                "building": r["building"],
                "floorNumber": r["floor_number"],
                "createdAt": _iso(r["created_at"]),
            }
            for r in rows
        ]


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class SqlHealthProbe:
    def __init__(self, engine: Engine):
        self._engine = engine

    def ping(self) -> bool:
        return ping_engine(self._engine)


def build_sql_gateway(engine: Engine, create: bool = True) -> PersistenceGateway:
    """Construye el gateway SQL; crea las tablas si ``create``."""
    if create:
        create_schema(engine)
    return PersistenceGateway(
        rooms=SqlRoomRepository(engine),
        devices=SqlDeviceRepository(engine),
        presences=SqlPresenceRepository(engine),
        activities=SqlActivityRepository(engine),
        attendances=SqlAttendanceRepository(engine),
        denials=SqlDenialRepository(engine),
        probe=SqlHealthProbe(engine),
    )
