"""Requesters repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import update

from username_attestor.models.requester import Requester

if TYPE_CHECKING:
    from username_attestor.datastore.client import Datastore


class RequesterRepository:
    """Data access layer for the ``users`` table."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def get(self, requester_id: str) -> Requester | None:
        async with self._ds.session() as session:
            return await session.get(Requester, requester_id)

    async def get_or_create(self, requester_id: str) -> Requester:
        """Return the requester, inserting a fresh row on first contact."""
        async with self._ds.session() as session:
            requester = await session.get(Requester, requester_id)
            if requester is not None:
                return requester
            requester = Requester(requester_id=requester_id)
            session.add(requester)
            await session.commit()
            await session.refresh(requester)
            return requester

    async def set_locale(self, requester_id: str, locale: str) -> None:
        await self._update(requester_id, locale=locale)

    async def set_payer_address(self, requester_id: str, payer_address: str) -> None:
        """Store a new claimed address; the claimed identifier is reset."""
        await self._update(requester_id, payer_address=payer_address, identifier=None)

    async def set_identifier(self, requester_id: str, payer_address: str, identifier: str) -> bool:
        """Store the claimed identifier if the claimed address is still *payer_address*."""
        async with self._ds.session() as session:
            stmt = (
                update(Requester)
                .where(
                    Requester.requester_id == requester_id,
                    Requester.payer_address == payer_address,
                )
                .values(identifier=identifier)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0  # type: ignore[union-attr]

    async def clear_payer_address(self, requester_id: str) -> None:
        await self._update(requester_id, payer_address=None)

    async def clear_claim(self, requester_id: str) -> None:
        """Release both claim fields so a new reservation can be started."""
        await self._update(requester_id, payer_address=None, identifier=None)

    async def _update(self, requester_id: str, **values: object) -> None:
        async with self._ds.session() as session:
            stmt = update(Requester).where(Requester.requester_id == requester_id).values(**values)
            await session.execute(stmt)
            await session.commit()
