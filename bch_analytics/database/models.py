"""SQLAlchemy models for the source dataset and the derived tables."""

from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Boolean, Numeric, JSON, Index
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Text array on PostgreSQL, JSON list elsewhere
AddressList = JSON().with_variant(ARRAY(String), "postgresql")


class TransactionColumns:
    """Columns of the public transactions table."""
    
    hash = Column(String(64))
    size = Column(Integer)
    virtual_size = Column(Integer)
    version = Column(Integer)
    lock_time = Column(BigInteger)
    block_hash = Column(String(64))
    block_number = Column(Integer)
    block_timestamp = Column(DateTime(timezone=True))
    input_count = Column(Integer)
    output_count = Column(Integer)
    input_value = Column(BigInteger)
    output_value = Column(BigInteger)
    is_coinbase = Column(Boolean)
    fee = Column(BigInteger)


# ============================================================
# Source tables (read-only, owned by the data provider)
# ============================================================

class SourceTransaction(TransactionColumns, Base):
    """Raw transaction records; hashes may repeat."""
    __tablename__ = 'transactions'
    
    row_id = Column(Integer, primary_key=True, autoincrement=True)


class SourceOutput(Base):
    """Raw transaction outputs."""
    __tablename__ = 'outputs'
    
    row_id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_hash = Column(String(64))
    output_index = Column('index', Integer)
    value = Column(BigInteger)
    addresses = Column(AddressList)
    
    __table_args__ = (
        Index('idx_outputs_tx_index', 'transaction_hash', 'index'),
    )


class SourceInput(Base):
    """Raw transaction inputs; coinbase inputs carry no spent reference."""
    __tablename__ = 'inputs'
    
    row_id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_hash = Column(String(64))
    spent_transaction_hash = Column(String(64))
    spent_output_index = Column(Integer)
    
    __table_args__ = (
        Index('idx_inputs_spent', 'spent_transaction_hash', 'spent_output_index'),
    )


# ============================================================
# Derived tables
# ============================================================

class StagingTransaction(TransactionColumns, Base):
    """Deduplicated transactions from the trailing window."""
    __tablename__ = 'stg_bch_transactions_last_3m'
    
    tx_hash = Column(String(64), primary_key=True)
    
    __table_args__ = (
        Index('idx_stg_bch_tx_block_timestamp', 'block_timestamp'),
    )


class AddressCurrentBalance(Base):
    """Current unspent balance per non-coinbase address."""
    __tablename__ = 'address_current_balance'
    
    address = Column(String(128), primary_key=True)
    balance_bch = Column(Numeric(38, 8), nullable=False)


SOURCE_TABLES = [
    SourceTransaction.__table__,
    SourceOutput.__table__,
    SourceInput.__table__,
]

TARGET_TABLES = [
    StagingTransaction.__table__,
    AddressCurrentBalance.__table__,
]
