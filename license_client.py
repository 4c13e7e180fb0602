import httpx
import json
import logging
import os
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any, Callable, List, Mapping
from pydantic import ValidationError

from config import settings, ProductConfig, sanitize_key
from database import OptionStore
from exceptions import ApiError, MalformedResponseError, TransportError
from models import ActivationResult, LicenseFormView, LicenseRecord, LicenseStatus, Notice
from notices import NoticeBoard
from security import NonceSigner

logger = logging.getLogger(__name__)

UPGRADE_HINT_THRESHOLD = 3
RENEWAL_HINT_WINDOW = timedelta(days=30)

# Any other stored status was written by a refused activation
ACCEPTED_STATUSES = {
    LicenseStatus.UNSET.value,
    LicenseStatus.VALID.value,
    LicenseStatus.DEACTIVATED.value,
}

Hook = Callable[["LicenseClient"], None]


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class LicenseClient:
    def __init__(
        self,
        store: OptionStore,
        product: ProductConfig,
        notifier: Optional[NoticeBoard] = None,
        nonces: Optional[NonceSigner] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        environ: Optional[Mapping[str, str]] = None,
        clock: Callable[[], datetime] = datetime.now,
        on_setup: Optional[Hook] = None,
        on_register_updater: Optional[Hook] = None,
    ):
        self.store = store
        self.product = product
        self.notifier = notifier or NoticeBoard()
        self.nonces = nonces or NonceSigner()
        self.transport = transport
        self.environ = os.environ if environ is None else environ
        self.clock = clock
        self.timeout = settings.LICENSE_API_TIMEOUT
        self.verify_ssl = settings.LICENSE_API_VERIFY_SSL

        self.key_pinned = False
        self._override_key: Optional[str] = None

        self.maybe_load_key_from_override()

        # Product specific capabilities supplied by the caller
        if on_setup:
            on_setup(self)
        if on_register_updater:
            on_register_updater(self)

    @property
    def prefix(self) -> str:
        return self.product.prefix

    def set_item_url(self, item_url: str):
        self.product.item_url = item_url

    def set_license_page(self, license_page_url: str):
        self.product.license_page_url = license_page_url

    def set_author(self, author: str):
        self.product.author = author

    # Persisted record

    def _get_record(self) -> LicenseRecord:
        stored = self.store.get_option(self.product.option_name, {})
        return LicenseRecord(**{**LicenseRecord().model_dump(), **stored})

    def _set_field(self, name: str, value: str):
        record = self._get_record().model_dump()
        record[name] = value
        self.store.update_option(self.product.option_name, record)

    def get_status(self) -> str:
        return (self._get_record().status or "").strip()

    def set_status(self, status):
        if isinstance(status, LicenseStatus):
            status = status.value
        self._set_field("status", status)

    def get_key(self) -> str:
        if self._override_key is not None:
            return self._override_key.strip()
        return (self._get_record().key or "").strip()

    def set_key(self, key: str):
        self._set_field("key", key)

    def is_valid(self) -> bool:
        return self.get_status() == LicenseStatus.VALID.value

    @property
    def remote_activation_failed(self) -> bool:
        """True while the stored status comes from a refused activation."""
        return self.get_status() not in ACCEPTED_STATUSES

    # Environment override

    def set_override_name(self, name: str):
        self.product.override_name = name.strip()
        self.maybe_load_key_from_override()

    def maybe_load_key_from_override(self):
        """
        Pin the license key to an environment variable when one is set.

        The variable is the configured override name, or one derived from
        the item name (``MYPLUGIN_LICENSE`` for "My Plugin"). Its value
        replaces the stored key and the key becomes read-only.
        """
        if not self.product.override_name:
            self.product.override_name = self.product.default_override_name()

        name = self.product.override_name
        if name not in self.environ:
            return

        value = self.environ[name]
        if self._get_record().key != value:
            self.set_key(value)

        self._override_key = value
        self.key_pinned = True
        logger.info("License key for %s pinned by %s", self.product.item_name, name)

    # Notices

    def _notify(self, message: str, success: bool = True):
        self.notifier.add(self.prefix + "license", message, success)

    def admin_notices(self) -> List[Notice]:
        """
        Notices to show in the admin area for this request.
        """
        notices = []

        if not self.is_valid():
            notices.append(Notice(
                setting=self.prefix + "license",
                code="license-inactive",
                type="error",
                message=(
                    f"Warning! Your {self.product.item_name} license is inactive which means "
                    "you're missing out on updates and support! Enter your license key "
                    f"({self.product.license_page_url}) or get a license here "
                    f"({self.product.store_url})."
                ),
            ))

        return notices + self.notifier.all()

    # Remote API

    async def _call_license_api(self, action: str) -> Optional[ActivationResult]:
        """
        Call the EDD licensing endpoint.

        Returns None without a request when no key is stored. Raises
        TransportError when the request fails and MalformedResponseError
        when the body is not a license response.
        """
        license_key = self.get_key()
        if license_key == "":
            return None

        params = {
            "edd_action": f"{action}_license",
            "license": license_key,
            "item_name": self.product.item_name.strip(),
        }

        logger.info("Calling %s for %s", params["edd_action"], self.product.item_name)

        # httpx error messages carry the request url, and with it the key
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                verify=self.verify_ssl,
                transport=self.transport,
            ) as client:
                response = await client.get(self.product.api_url, params=params)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{e.response.status_code} {e.response.reason_phrase}".strip()
            ) from e
        except httpx.HTTPError as e:
            message = (str(e) or e.__class__.__name__).replace(license_key, "***")
            raise TransportError(message) from e

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponseError() from e

        if not isinstance(data, dict):
            raise MalformedResponseError()

        try:
            return ActivationResult.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError() from e

    def _activation_message(self, result: ActivationResult) -> str:
        message = (
            f"Your {self.product.item_name} license has been activated. "
            f"You have used {result.site_count}/{result.license_limit} activations. "
        )

        remaining = result.license_limit - result.site_count
        if result.license_limit > 0 and remaining <= UPGRADE_HINT_THRESHOLD:
            message += f"Did you know you can upgrade your license? {self.product.store_url}"
        elif result.expires is not None:
            now = self._now_for(result.expires)
            if result.expires < now + RENEWAL_HINT_WINDOW:
                days_left = _round_half_up((result.expires - now).total_seconds() / 86400)
                message += (
                    f"Your license is expiring in {days_left} days, would you like to extend it? "
                    f"{self.product.store_url}"
                )

        return message.strip()

    def _now_for(self, moment: datetime) -> datetime:
        now = self.clock()
        if moment.tzinfo is not None and now.tzinfo is None:
            now = now.astimezone()
        elif moment.tzinfo is None and now.tzinfo is not None:
            now = now.replace(tzinfo=None)
        return now

    async def activate(self) -> bool:
        """
        Activate the stored license key with the license server.

        Returns True when the license is valid afterwards.
        """
        try:
            result = await self._call_license_api("activate")
            if result is None:
                return self.is_valid()
            if result.license != LicenseStatus.VALID.value:
                raise ApiError.from_result(result, self.product.store_url)
        except TransportError as e:
            self._notify(f"Request error: {e.message}", success=False)
            return False
        except MalformedResponseError as e:
            logger.warning("Activation of %s returned an unusable body", self.product.item_name)
            self._notify(e.message, success=False)
            return self.is_valid()
        except ApiError as e:
            logger.warning(
                "Activation of %s refused: license=%s error=%s",
                self.product.item_name, e.license_status, e.error,
            )
            self._notify(e.message, success=False)
            if e.error == LicenseStatus.EXPIRED.value:
                self.set_status(LicenseStatus.EXPIRED)
            else:
                self.set_status(e.license_status)
            return self.is_valid()

        self.set_status(LicenseStatus.VALID)
        self._notify(self._activation_message(result), success=True)

        return self.is_valid()

    async def deactivate(self) -> bool:
        """
        Deactivate the stored license key for this site.
        """
        try:
            result = await self._call_license_api("deactivate")
        except TransportError as e:
            self._notify(f"Request error: {e.message}", success=False)
            return self.get_status() == LicenseStatus.DEACTIVATED.value
        except MalformedResponseError as e:
            logger.warning("Deactivation of %s returned an unusable body", self.product.item_name)
            self._notify(e.message, success=False)
            return self.get_status() == LicenseStatus.DEACTIVATED.value

        if result is not None:
            if result.license == LicenseStatus.DEACTIVATED.value:
                self._notify(f"Your {self.product.item_name} license has been deactivated.")
            else:
                self._notify(f"Failed to deactivate your {self.product.item_name} license.", success=False)

            self.set_status(result.license)

        return self.get_status() == LicenseStatus.DEACTIVATED.value

    # Settings form

    def _field_names(self) -> Dict[str, str]:
        return {
            "key": self.prefix + "license_key",
            "nonce": self.prefix + "license_nonce",
            "action": self.prefix + "license_action",
        }

    def visible_key(self) -> str:
        key = self.get_key()
        if len(key) > 5 and (self.is_valid() or not self.remote_activation_failed):
            return "*" * (len(key) - 4) + key[-4:]
        return key

    def license_form(self) -> LicenseFormView:
        fields = self._field_names()
        return LicenseFormView(
            key_field=fields["key"],
            nonce_field=fields["nonce"],
            action_field=fields["action"],
            nonce=self.nonces.create(fields["nonce"]),
            visible_key=self.visible_key(),
            readonly=self.is_valid() or self.key_pinned,
            status=self.get_status(),
            is_valid=self.is_valid(),
            key_pinned=self.key_pinned,
        )

    async def handle_form_submission(self, form: Mapping[str, Any]) -> Optional[bool]:
        """
        Handle a posted license form.

        Saves the submitted key unless it is the obfuscated one, then
        activates when the license is not valid yet. Otherwise runs the
        requested activate/deactivate action, if any.
        """
        fields = self._field_names()

        if fields["key"] not in form:
            return None

        self.nonces.check(fields["nonce"], form.get(fields["nonce"], ""))

        license_key = str(form[fields["key"]])

        if "*" not in license_key:
            if self.key_pinned:
                logger.info("Ignoring submitted key, %s is pinned", self.product.override_name)
            else:
                self.set_key(sanitize_key(license_key).strip())

        # Saving a key always tries to activate it
        if not self.is_valid():
            return await self.activate()

        action = str(form.get(fields["action"], "")).strip()

        if action == "activate":
            return await self.activate()
        if action == "deactivate":
            return await self.deactivate()

        return None

    def describe(self) -> Dict[str, Any]:
        return {
            "status": self.get_status(),
            "isValid": self.is_valid(),
            "licenseKey": self.visible_key(),
            "keyPinned": self.key_pinned,
            "itemName": self.product.item_name,
        }
