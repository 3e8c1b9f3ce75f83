"""
Machine catalogue: items, claw machines and gacha machines.
Pure schema only.
"""

from __future__ import annotations

from typing import List

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from arcade.core.database.base import Base, IdMixin, TimestampMixin
from arcade.database.models.enums import Rarity


class Item(Base, IdMixin, TimestampMixin):
    """
    An item that can appear in any machine.

    Schema-only:
    - rarity (Rarity value)
    - spawn_percentage / catch_percentage (0..100, claw)
    - pull_weight (gacha)
    - max_item_spawned (claw per-round spawn cap)
    """

    __tablename__ = "items"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    rarity: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Rarity.COMMON.value
    )
    spawn_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    catch_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pull_weight: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_item_spawned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ClawMachine(Base, IdMixin, TimestampMixin):
    __tablename__ = "claw_machines"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    max_item: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    items: Mapped[List["ClawMachineItem"]] = relationship(
        back_populates="machine",
        order_by="ClawMachineItem.position",
        cascade="all, delete-orphan",
        lazy="raise",
    )


class ClawMachineItem(Base, IdMixin):
    """Slot of an item inside a claw machine; `position` fixes declared order."""

    __tablename__ = "claw_machine_items"
    __table_args__ = (
        Index("ix_claw_machine_items_machine_position", "claw_machine_id", "position"),
    )

    claw_machine_id: Mapped[int] = mapped_column(
        ForeignKey("claw_machines.id", ondelete="CASCADE"), nullable=False
    )
    item_id: Mapped[int] = mapped_column(
        ForeignKey("items.id", ondelete="RESTRICT"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    machine: Mapped[ClawMachine] = relationship(back_populates="items", lazy="raise")
    item: Mapped[Item] = relationship(lazy="raise")


class GachaMachine(Base, IdMixin, TimestampMixin):
    __tablename__ = "gacha_machines"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price_single: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    price_times_ten: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    super_rare_pity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    ultra_rare_pity: Mapped[int] = mapped_column(Integer, nullable=False, default=90)

    items: Mapped[List["GachaMachineItem"]] = relationship(
        back_populates="machine",
        order_by="GachaMachineItem.position",
        cascade="all, delete-orphan",
        lazy="raise",
    )


class GachaMachineItem(Base, IdMixin):
    __tablename__ = "gacha_machine_items"
    __table_args__ = (
        Index(
            "ix_gacha_machine_items_machine_position", "gacha_machine_id", "position"
        ),
    )

    gacha_machine_id: Mapped[int] = mapped_column(
        ForeignKey("gacha_machines.id", ondelete="CASCADE"), nullable=False
    )
    item_id: Mapped[int] = mapped_column(
        ForeignKey("items.id", ondelete="RESTRICT"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    machine: Mapped[GachaMachine] = relationship(back_populates="items", lazy="raise")
    item: Mapped[Item] = relationship(lazy="raise")
