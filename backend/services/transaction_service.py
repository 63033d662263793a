"""Service for reading and recording ledger transactions."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from models import Asset, Transaction, generate_uuid
from schemas.imports import ImportResult, ImportRowError, NormalizedTransaction
from schemas.transaction import TransactionCreate
from services.holdings_service import CASH_SYMBOL, LedgerEntry, is_cash_kind, parse_kind

logger = logging.getLogger(__name__)


def is_importable(row: NormalizedTransaction, today: date) -> bool:
    """Server-side re-check of a reviewed import row."""
    if not row.symbol or not row.symbol.strip():
        return False
    if row.quantity <= 0 or row.price <= 0:
        return False
    if row.date > today:
        return False
    return row.valid


class TransactionService:
    """Reads the transaction ledger and records new entries."""

    @staticmethod
    def ensure_asset(db: Session, symbol: str, name: Optional[str] = None) -> Asset:
        """Get or create the Asset for a symbol (stored upper-cased).

        Returns:
            The Asset record (flushed but not committed)
        """
        symbol = symbol.strip().upper()
        asset = db.query(Asset).filter_by(symbol=symbol).first()
        if not asset:
            asset = Asset(symbol=symbol, name=name or symbol)
            db.add(asset)
            db.flush()
            logger.info("Created asset: %s", symbol)
        elif name and not asset.name:
            asset.name = name
            db.flush()
        return asset

    @staticmethod
    def list_ledger(db: Session, portfolio_id: Optional[str] = None) -> list[LedgerEntry]:
        """All transactions as ledger entries, oldest first.

        Args:
            db: Database session
            portfolio_id: Restrict to one portfolio; None reads every portfolio.
        """
        query = db.query(Transaction).options(joinedload(Transaction.asset))
        if portfolio_id is not None:
            query = query.filter(Transaction.portfolio_id == portfolio_id)
        rows = query.order_by(
            Transaction.transaction_date.asc(), Transaction.created_at.asc()
        ).all()

        return [
            LedgerEntry(
                portfolio_id=t.portfolio_id,
                asset_id=t.asset_id,
                symbol=t.asset.symbol if t.asset else "",
                kind=t.transaction_type,
                quantity=t.quantity,
                price_per_unit=t.price_per_unit,
                fees=t.fees or Decimal("0"),
                date=t.transaction_date,
                name=(t.asset.name or "") if t.asset else "",
            )
            for t in rows
        ]

    @staticmethod
    def create_transaction(db: Session, portfolio_id: str, data: TransactionCreate) -> Transaction:
        """Record a single transaction.

        Cash movements are stored against the synthetic ``$CASH`` asset
        since every row references an asset.
        """
        kind = parse_kind(data.type)
        symbol = CASH_SYMBOL if is_cash_kind(kind) else data.symbol
        if not symbol or not symbol.strip():
            raise ValueError("Symbol is required for non-cash transactions")

        asset = TransactionService.ensure_asset(db, symbol, data.name)
        fees = data.fees or Decimal("0")
        txn = Transaction(
            portfolio_id=portfolio_id,
            asset_id=asset.id,
            transaction_type=kind.value,
            quantity=data.quantity,
            price_per_unit=data.price_per_unit,
            total_amount=data.price_per_unit * data.quantity + fees,
            fees=fees,
            transaction_date=data.date,
            broker_source=data.broker_source,
            notes=data.notes,
        )
        db.add(txn)
        db.flush()
        logger.info(
            "Recorded %s of %s %s in portfolio %s",
            kind.value, data.quantity, asset.symbol, portfolio_id,
        )
        return txn

    @staticmethod
    def import_transactions(
        db: Session,
        portfolio_id: str,
        rows: list[NormalizedTransaction],
        broker: str = "manual",
        today: Optional[date] = None,
    ) -> ImportResult:
        """Persist the importable subset of reviewed rows as one batch.

        Each row is written inside its own savepoint so a failing row
        does not take the rest of the batch down with it.

        Raises:
            ValueError: If no row passes validation.
        """
        today = today or date.today()
        valid_rows = [r for r in rows if is_importable(r, today)]
        if not valid_rows:
            raise ValueError("No valid transactions to import")

        batch_id = generate_uuid()
        errors: list[ImportRowError] = []
        imported = 0

        for row in valid_rows:
            try:
                # Cash movements land on the synthetic $CASH asset whatever the row says
                symbol = CASH_SYMBOL if is_cash_kind(row.type) else row.symbol
                with db.begin_nested():
                    asset = TransactionService.ensure_asset(db, symbol)
                    db.add(
                        Transaction(
                            portfolio_id=portfolio_id,
                            asset_id=asset.id,
                            transaction_type=row.type.value,
                            quantity=row.quantity,
                            price_per_unit=row.price,
                            total_amount=row.total,
                            fees=row.fees,
                            transaction_date=row.date,
                            broker_source=broker,
                            import_batch_id=batch_id,
                        )
                    )
                    db.flush()
                imported += 1
            except Exception as e:
                logger.warning("Failed to import %s row: %s", row.symbol, e)
                errors.append(ImportRowError(symbol=row.symbol, error=str(e)))

        logger.info(
            "Import batch %s: %d imported, %d failed, %d skipped",
            batch_id, imported, len(errors), len(rows) - len(valid_rows),
        )
        return ImportResult(
            batch_id=batch_id,
            imported=imported,
            failed=len(errors),
            skipped=len(rows) - len(valid_rows),
            errors=errors,
        )
