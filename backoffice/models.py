"""SQLAlchemy models for the local sheet backend (spreadsheets kept in the app database)."""
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

db = SQLAlchemy()


class Workbook(db.Model):
    """A spreadsheet: the lead database, or a template workbook made for a lead."""

    __tablename__ = "workbooks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    sheets: Mapped[list["Sheet"]] = relationship(
        back_populates="workbook", cascade="all, delete-orphan", order_by="Sheet.position"
    )
    editors: Mapped[list["WorkbookEditor"]] = relationship(
        back_populates="workbook", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Workbook {self.id} ({self.title})>"


class Sheet(db.Model):
    """A named tab inside a workbook."""

    __tablename__ = "sheets"
    __table_args__ = (UniqueConstraint("workbook_id", "title"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    workbook_id: Mapped[str] = mapped_column(ForeignKey("workbooks.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    header_style: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    workbook: Mapped[Workbook] = relationship(back_populates="sheets")
    rows: Mapped[list["SheetRow"]] = relationship(
        back_populates="sheet", cascade="all, delete-orphan", order_by="SheetRow.row_index"
    )

    def __repr__(self) -> str:
        return f"<Sheet {self.title} in {self.workbook_id}>"


class SheetRow(db.Model):
    """Cell values of one 1-indexed row, stored left to right."""

    __tablename__ = "sheet_rows"
    __table_args__ = (UniqueConstraint("sheet_id", "row_index"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sheet_id: Mapped[int] = mapped_column(ForeignKey("sheets.id"), nullable=False, index=True)
    row_index: Mapped[int] = mapped_column(Integer, nullable=False)
    cells: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    sheet: Mapped[Sheet] = relationship(back_populates="rows")


class WorkbookEditor(db.Model):
    __tablename__ = "workbook_editors"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    workbook_id: Mapped[str] = mapped_column(ForeignKey("workbooks.id"), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="writer")

    workbook: Mapped[Workbook] = relationship(back_populates="editors")
