"""Database access layer for the back-office collections.

Every registry (partners, fees, shipments, financial entries...) is stored as
an ordered list of JSON documents. Saving a collection replaces its rows and
bumps its revision; listeners subscribed to :data:`collection_updated` and
clients polling :meth:`CollectionRepository.revisions` use that number to
refresh their copy.
"""

from __future__ import annotations

import random
from typing import Any, Dict, Iterable, List, Mapping, Optional

from blinker import Namespace
from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoResultFound

from carga_common.financials import BankAccount, FinancialEntry, new_entry_id
from carga_common.partners import Partner, link_despachante_clients
from carga_common.shipments import Shipment

from .database import collection_revisions, documents, session_scope
from .seeds import SEEDS, SeedFactory

_signals = Namespace()
collection_updated = _signals.signal("collection-updated")


class UnknownCollectionError(KeyError):
    """Raised for a collection name without a registered seed."""


class CollectionRepository:
    """Provides get/save/notify operations for every registry."""

    def __init__(
        self,
        engine: Engine,
        seeds: Optional[Mapping[str, SeedFactory]] = None,
        rng: Optional[random.Random] = None,
    ):
        self._engine = engine
        self._seeds = dict(seeds if seeds is not None else SEEDS)
        self._rng = rng or random.Random()

    def _check(self, name: str) -> None:
        if name not in self._seeds:
            raise UnknownCollectionError(name)

    def get(self, name: str) -> List[Dict[str, Any]]:
        """Return the records of ``name``, seeding it on first access."""

        self._check(name)
        with session_scope(self._engine) as session:
            revision = session.execute(
                select(collection_revisions.c.revision).where(
                    collection_revisions.c.collection == name
                )
            ).scalar_one_or_none()
            rows = session.execute(
                select(documents.c.payload)
                .where(documents.c.collection == name)
                .order_by(documents.c.position)
            ).all()
        if revision is None:
            records = self._seeds[name]()
            self.save(name, records)
            return records
        return [dict(row.payload) for row in rows]

    def save(self, name: str, records: Iterable[Mapping[str, Any]]) -> int:
        """Replace the records of ``name`` and return the new revision."""

        self._check(name)
        payloads = [dict(record) for record in records]
        with session_scope(self._engine) as session:
            session.execute(delete(documents).where(documents.c.collection == name))
            if payloads:
                session.execute(
                    insert(documents),
                    [
                        {
                            "collection": name,
                            "doc_id": str(payload.get("id", position)),
                            "position": position,
                            "payload": payload,
                        }
                        for position, payload in enumerate(payloads)
                    ],
                )
            current = session.execute(
                select(collection_revisions.c.revision).where(
                    collection_revisions.c.collection == name
                )
            ).scalar_one_or_none()
            if current is None:
                revision = 1
                session.execute(
                    insert(collection_revisions).values(collection=name, revision=revision)
                )
            else:
                revision = current + 1
                session.execute(
                    update(collection_revisions)
                    .where(collection_revisions.c.collection == name)
                    .values(revision=revision)
                )
        collection_updated.send(name, revision=revision)
        return revision

    def revisions(self) -> Dict[str, int]:
        """Current revision of every collection that has been written."""

        with session_scope(self._engine) as session:
            rows = session.execute(select(collection_revisions)).all()
        return {row.collection: row.revision for row in rows}

    def seed_all(self) -> Dict[str, int]:
        """Write the seed of every collection that was never saved."""

        written = self.revisions()
        for name, factory in self._seeds.items():
            if name not in written:
                written[name] = self.save(name, factory())
        return written

    def find(self, name: str, doc_id: Any) -> Dict[str, Any]:
        for record in self.get(name):
            if str(record.get("id")) == str(doc_id):
                return record
        raise NoResultFound(f"{name} record {doc_id} not found")

    # Partners

    def partners(self) -> List[Partner]:
        return [Partner.from_dict(p) for p in self.get("partners")]

    def save_partners(self, partners: Iterable[Partner]) -> int:
        """Persist partners after relinking customs brokers to their clients."""

        linked = link_despachante_clients(list(partners))
        return self.save("partners", [p.to_dict() for p in linked])

    # Shipments

    def shipments(self) -> List[Shipment]:
        return [Shipment.from_dict(s) for s in self.get("shipments")]

    def get_shipment(self, shipment_id: str) -> Shipment:
        return Shipment.from_dict(self.find("shipments", shipment_id))

    def add_shipment(self, shipment: Shipment) -> Shipment:
        records = self.get("shipments")
        records.insert(0, shipment.to_dict())
        self.save("shipments", records)
        return shipment

    def update_shipment(self, shipment: Shipment) -> Shipment:
        """Replace the stored shipment with the same id.

        Raises:
            NoResultFound: When no shipment has that id.
        """

        records = self.get("shipments")
        for index, record in enumerate(records):
            if record.get("id") == shipment.id:
                records[index] = shipment.to_dict()
                self.save("shipments", records)
                return shipment
        raise NoResultFound(f"Shipment {shipment.id} not found")

    # Financials

    def bank_accounts(self) -> List[BankAccount]:
        return [BankAccount.from_dict(a) for a in self.get("bank_accounts")]

    def save_bank_accounts(self, accounts: Iterable[BankAccount]) -> int:
        return self.save("bank_accounts", [a.to_dict() for a in accounts])

    def financial_entries(self) -> List[FinancialEntry]:
        return [FinancialEntry.from_dict(e) for e in self.get("financial_entries")]

    def add_financial_entry(self, entry: Mapping[str, Any]) -> Dict[str, Any]:
        """Store a new entry at the top of the ledger with a generated id."""

        record = dict(entry)
        record["id"] = new_entry_id(1000, self._rng)
        records = self.get("financial_entries")
        records.insert(0, record)
        self.save("financial_entries", records)
        return record

    def add_financial_entries(
        self, entries: Iterable[Mapping[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Append imported or renegotiated entries in one save."""

        created = []
        for entry in entries:
            record = dict(entry)
            record["id"] = new_entry_id(10000, self._rng)
            created.append(record)
        records = self.get("financial_entries")
        records.extend(created)
        self.save("financial_entries", records)
        return created

    def find_financial_entry(self, entry_id: str) -> FinancialEntry:
        return FinancialEntry.from_dict(self.find("financial_entries", entry_id))

    def update_financial_entry(
        self, entry_id: str, changes: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """Merge ``changes`` into the stored entry.

        Raises:
            NoResultFound: When no entry has that id.
        """

        records = self.get("financial_entries")
        for index, record in enumerate(records):
            if record.get("id") == entry_id:
                merged = {**record, **changes, "id": entry_id}
                records[index] = merged
                self.save("financial_entries", records)
                return merged
        raise NoResultFound(f"Financial entry {entry_id} not found")


__all__ = [
    "CollectionRepository",
    "UnknownCollectionError",
    "collection_updated",
]
