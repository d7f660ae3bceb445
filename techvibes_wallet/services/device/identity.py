"""
Device Identity Manager

Derives and persists a best-effort-stable fingerprint for this device,
and registers device-to-user mappings with the backend.

Lookup order for a new fingerprint:
1. Persisted value (returned unchanged)
2. Platform identifier from the injected provider
3. Synthesized "<prefix>_<epoch ms>_<random hex>"

A synthesized fingerprint does not survive reinstalls; callers must
tolerate fingerprint churn. Storage failures yield None ("fingerprinting
unavailable"), never an exception.
"""

import inspect
import secrets
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from techvibes_wallet.audit import AuditLogger, get_logger
from techvibes_wallet.config import get_settings
from techvibes_wallet.errors import LocalStorageError
from techvibes_wallet.models.audit import AuditEventBuilder
from techvibes_wallet.models.gateway import DeviceRegistration, GatewayResult
from techvibes_wallet.services.gateway import RemoteAccountGateway
from techvibes_wallet.services.storage import KeyValueStorageInterface

logger = get_logger(__name__)

PlatformIdProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]

MACHINE_ID_PATHS = ("/etc/machine-id", "/var/lib/dbus/machine-id")

# Forwarded to the device-mapping endpoint; the PHP side expects every key.
DEVICE_MAPPING_FIELDS = (
    "username",
    "account_number",
    "techvibes_id",
    "full_name",
    "email",
    "phone_no",
    "fintech",
    "device_type",
    "os_version",
    "app_version",
    "device_serial",
    "device_ip",
    "location",
    "login_code",
    "account_name",
    "sub_account_number",
    "role",
    "customer_id",
)


def machine_id_provider() -> Optional[str]:
    """Read the OS machine id, if the platform has one."""
    for candidate in MACHINE_ID_PATHS:
        try:
            value = Path(candidate).read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if value:
            return value
    return None


class DeviceIdentityManager:
    """
    Owns the device fingerprint.

    get_or_create_device_id is idempotent once a value is persisted.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        platform_id_provider: Optional[PlatformIdProvider] = machine_id_provider,
        gateway: Optional[RemoteAccountGateway] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._platform_id_provider = platform_id_provider
        self._gateway = gateway
        self._audit_logger = audit_logger
        self._key = get_settings().storage.device_fingerprint_key
        self._prefix = get_settings().app.device_id_prefix

    async def _platform_id(self) -> Optional[str]:
        if self._platform_id_provider is None:
            return None
        try:
            value = self._platform_id_provider()
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.warning("platform_device_id_failed", error=str(e))
            return None
        return str(value) if value else None

    def _synthesize(self) -> str:
        return f"{self._prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"

    async def get_or_create_device_id(self) -> Optional[str]:
        """
        Return the persisted fingerprint, creating and persisting one if
        needed.

        Returns:
            The fingerprint, or None when local storage is unusable
        """
        try:
            stored = await self._storage.get_item(self._key)
            if stored:
                await self._audit(AuditEventBuilder.device_id_resolved(str(stored), created=False))
                return str(stored)

            device_id = await self._platform_id() or self._synthesize()
            await self._storage.save_item(self._key, device_id)
        except LocalStorageError as e:
            logger.error("device_id_storage_failed", error=str(e))
            await self._audit(AuditEventBuilder.device_id_unavailable(str(e)))
            return None

        await self._audit(AuditEventBuilder.device_id_resolved(device_id, created=True))
        return device_id

    async def clear_device_id(self) -> bool:
        """Forget the persisted fingerprint (e.g. on full sign-out)."""
        try:
            return await self._storage.remove_item(self._key)
        except LocalStorageError as e:
            logger.error("device_id_clear_failed", error=str(e))
            return False

    async def map_device(self, user_details: dict[str, Any]) -> GatewayResult:
        """
        Create or update the backend device mapping (idempotent upsert).

        Args:
            user_details: Must contain "device_fingerprint"; other known
                keys are forwarded, missing ones sent as null
        """
        fingerprint = user_details.get("device_fingerprint")
        if not fingerprint:
            return GatewayResult.fail("Device fingerprint is missing.")
        if self._gateway is None:
            return GatewayResult.fail("No gateway configured for device mapping.")

        payload: dict[str, Any] = {
            "action": "create",
            "device_fingerprint": fingerprint,
            "user_id": user_details.get("id") or user_details.get("user_id"),
            "login_method": user_details.get("login_method") or "unknown",
            "source": user_details.get("source") or "mobile_app",
        }
        for field in DEVICE_MAPPING_FIELDS:
            payload[field] = user_details.get(field)

        result = await self._gateway.device_mapping(payload)
        await self._audit(
            AuditEventBuilder.device_mapping(fingerprint, result.success, result.error)
        )
        return result

    async def map_current_device(self, user_details: dict[str, Any]) -> GatewayResult:
        """
        Map this device using its own fingerprint.

        When fingerprinting is unavailable the mapping is skipped and a
        failed result returned; the caller's flow continues.
        """
        fingerprint = await self.get_or_create_device_id()
        if fingerprint is None:
            logger.info("device_mapping_skipped", reason="fingerprint unavailable")
            return GatewayResult.fail("Device fingerprint unavailable; mapping skipped.")
        return await self.map_device({**user_details, "device_fingerprint": fingerprint})

    async def check_device_registration(self, fingerprint: Optional[str]) -> DeviceRegistration:
        """Ask the backend which users, if any, this device is mapped to."""
        if not fingerprint:
            return DeviceRegistration(success=False, error="Device fingerprint is missing.")
        if self._gateway is None:
            return DeviceRegistration(success=False, error="No gateway configured for device mapping.")

        result = await self._gateway.device_mapping({"device_fingerprint": fingerprint})
        if not result.success:
            return DeviceRegistration(
                success=False,
                error=result.error or "Device mapping API failed",
            )

        body = result.raw or {}
        user = body.get("user")
        if body.get("isMapped") and isinstance(user, dict):
            return DeviceRegistration(success=True, mapped=True, mapped_users=[user])
        return DeviceRegistration(success=True, mapped=False)

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
