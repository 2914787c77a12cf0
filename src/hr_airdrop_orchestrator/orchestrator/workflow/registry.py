"""Employee registry: wallet generation and role import.

The registry owns the employee records. Every mutation replaces the whole list
(copy-on-write); callers never edit a record in place.
"""

from __future__ import annotations

import csv
import logging
import re
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from hr_airdrop_orchestrator.orchestrator.errors import PreconditionError, ValidationError
from hr_airdrop_orchestrator.providers.custody import WalletCustodyProvider

from .models import EmployeeRecord, Role, valid_role_names

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s,]+@[^@\s,]+\.[^@\s,]+$")

REQUIRED_CSV_COLUMN = "email"


@dataclass(frozen=True, slots=True)
class EmployeeEntry:
    """One parsed line of the `generate_wallets` input."""

    email: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class RoleRow:
    """One row of role data to merge into the registry."""

    email: str
    name: str | None = None
    role: str | None = None


def validate_email(value: str) -> str:
    email = value.strip()
    if not _EMAIL_RE.match(email):
        raise ValidationError(f"Invalid email address: {value!r}", details={"email": value})
    return email


def parse_employee_text(text: str) -> list[EmployeeEntry]:
    """Parse `name,email` lines (name optional), one employee per line.

    Blank lines and surrounding whitespace are ignored. With a comma, the first
    field is the name and the remainder is the email.
    """

    entries: list[EmployeeEntry] = []
    seen: set[str] = set()
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if "," in line:
            name_part, email_part = line.split(",", 1)
            name = name_part.strip() or None
        else:
            name, email_part = None, line
        email = validate_email(email_part)
        key = email.lower()
        if key in seen:
            raise ValidationError(f"Duplicate employee email: {email}", details={"email": email})
        seen.add(key)
        entries.append(EmployeeEntry(email=email, name=name))
    return entries


def read_role_csv(path: Path) -> list[RoleRow]:
    """Read role data from a CSV file with an `email` header and optional `name`, `role`."""

    if not path.exists() or not path.is_file():
        raise ValidationError(f"CSV file not found: {path}", details={"path": str(path)})

    try:
        with path.open(newline="", encoding="utf-8-sig") as fp:
            reader = csv.DictReader(fp)
            header = [h.strip().lower() for h in (reader.fieldnames or [])]
            if not header:
                raise ValidationError("CSV file is empty.", details={"path": str(path)})
            if REQUIRED_CSV_COLUMN not in header:
                raise ValidationError(
                    'CSV file must have an "email" column.', details={"columns": header}
                )
            rows: list[RoleRow] = []
            for raw in reader:
                row = {
                    (k or "").strip().lower(): (v or "").strip()
                    for k, v in raw.items()
                    if isinstance(v, str)
                }
                if not any(row.values()):
                    continue
                rows.append(
                    RoleRow(
                        email=row.get("email", ""),
                        name=row.get("name") or None,
                        role=row.get("role") or None,
                    )
                )
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise ValidationError(f"Failed to read CSV: {e}", details={"path": str(path)}) from e

    if not rows:
        raise ValidationError("CSV file is empty.", details={"path": str(path)})
    return rows


class EmployeeRegistry:
    """Ordered employee records keyed by unique email."""

    def __init__(self, records: Iterable[EmployeeRecord] = ()) -> None:
        self._records: tuple[EmployeeRecord, ...] = ()
        self.replace(records)

    @property
    def records(self) -> list[EmployeeRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def find(self, email: str) -> EmployeeRecord | None:
        key = email.strip().lower()
        for record in self._records:
            if record.email.lower() == key:
                return record
        return None

    def replace(self, records: Iterable[EmployeeRecord]) -> None:
        """Swap in a complete new employee list."""

        new_records = tuple(records)
        seen: set[str] = set()
        for record in new_records:
            key = record.email.lower()
            if key in seen:
                raise ValidationError(
                    f"Duplicate employee email: {record.email}", details={"email": record.email}
                )
            seen.add(key)
        self._records = new_records

    def generate(
        self,
        entries: Sequence[EmployeeEntry],
        custody: WalletCustodyProvider,
        *,
        max_workers: int = 8,
    ) -> list[EmployeeRecord]:
        """Provision one custodial wallet per entry and replace the registry with them.

        Custody calls are independent and run concurrently; the registry is only
        updated once every call has returned.
        """

        if not entries:
            raise PreconditionError(
                "No valid employee emails found. Please provide at least one employee.",
                missing="employees",
            )

        emails = [entry.email for entry in entries]
        logger.info("Provisioning custodial wallets", extra={"count": len(emails)})
        with ThreadPoolExecutor(max_workers=min(max_workers, len(emails))) as pool:
            wallets = list(pool.map(custody.get_or_create_wallet, emails))

        records = [
            EmployeeRecord(
                email=entry.email,
                name=entry.name,
                wallet_address=wallet.address,
                simulated_wallet=wallet.simulated,
            )
            for entry, wallet in zip(entries, wallets, strict=True)
        ]
        self.replace(records)
        return self.records

    def import_roles(self, rows: Sequence[RoleRow]) -> list[EmployeeRecord]:
        """Merge names and roles into existing records.

        Validates every row before touching the registry, so a bad row leaves
        the records unchanged. Never creates a record.
        """

        if not rows:
            raise ValidationError("No employee rows to import.")

        updates: dict[str, tuple[str | None, Role | None]] = {}
        for index, row in enumerate(rows, start=1):
            if not row.email or not row.email.strip():
                raise ValidationError("Every row must have an email.", details={"row": index})
            existing = self.find(row.email)
            if existing is None:
                raise ValidationError(
                    f"Email {row.email} does not match any generated wallet. "
                    "Please generate wallets first.",
                    details={"email": row.email},
                )
            role: Role | None = None
            if row.role:
                try:
                    role = Role.parse(row.role)
                except ValidationError as e:
                    raise ValidationError(
                        f'Invalid role "{row.role}" for {row.email}. '
                        f'Valid roles are: {", ".join(valid_role_names())}.',
                        details={**e.details, "email": row.email},
                    ) from e
            updates[existing.email.lower()] = (row.name, role)

        merged: list[EmployeeRecord] = []
        for record in self._records:
            update = updates.get(record.email.lower())
            if update is None:
                merged.append(record)
                continue
            name, role = update
            merged.append(
                record.model_copy(
                    update={
                        "name": name if name is not None else record.name,
                        "role": role if role is not None else record.role,
                    }
                )
            )
        self.replace(merged)
        return self.records
