"""Proyecciones de dispositivo y presencia.

Se calculan de cada evento attendance, independientemente del motor
de estado; sus escrituras son caminos separados.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ..domain.event import CanonicalEvent
from ..domain.records import AttendanceRecord, DeviceRecord, PresenceRecord


def _now() -> datetime:
    return datetime.now(timezone.utc)


def device_record(event: CanonicalEvent, now: Optional[datetime] = None) -> DeviceRecord:
    info = event.device_info
    return DeviceRecord(
        device_id=info.device_id,
        location=event.location,
        ssid=info.ssid,
        mqtt_server=info.mqtt_server,
        mqtt_port=info.mqtt_port,
        last_seen=now or _now(),
        firmware_version=info.firmware_version,
        uptime=info.uptime,
        free_heap=info.free_heap,
        wifi_signal=info.wifi_signal,
        is_online=True,
    )


def presence_record(event: CanonicalEvent, now: Optional[datetime] = None) -> PresenceRecord:
    return PresenceRecord(
        location=event.location,
        card_uid=event.card_uid,
        is_present=event.is_check_in,
        last_detected=now or _now(),
        presence_duration=event.duration or 0,
        card_absent_count=event.card_absent_count,
        device_id=event.device_info.device_id,
    )


def attendance_record(event: CanonicalEvent) -> AttendanceRecord:
    known = {"card_uid", "role", "check_in", "check_out", "duration"}
    return AttendanceRecord(
        location=event.location,
        card_uid=event.card_uid,
        role=event.role_label,
        check_in=event.check_in,
        check_out=event.check_out,
        duration=event.duration,
        is_checked_in=event.is_check_in,
        timestamp=event.timestamp_iso,
        device_info=event.device_info.to_dict(event.location),
        extra={k: v for k, v in event.payload.items() if k not in known},
    )
