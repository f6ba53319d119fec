"""
Shared fixtures: a small food-delivery snapshot and helpers to write it out.
"""
import os

import pandas as pd
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from delivery_reports.loading.database import load_snapshot_to_db

AS_OF = pd.Timestamp('2024-06-30')


def _customers():
    return pd.DataFrame({
        'customer_id': [1, 2, 3, 4],
        'customer_name': ['Arjun Mehta', 'Priya Sharma', 'Rahul Verma', 'Neha Gupta'],
        'reg_date': ['2022-02-10', '2022-05-21', '2023-01-15', '2023-03-02'],
    })


def _restaurants():
    return pd.DataFrame({
        'restaurant_id': [1, 2, 3],
        'restaurant_name': ['Spice Route', 'Tandoor House', 'Curry Leaf'],
        'city': ['Mumbai', 'Delhi', 'Mumbai'],
        'country': ['India', 'India', 'India'],
        'opening_hours': ['10:00 AM - 11:00 PM', '11:00 AM - 10:30 PM', '9:00 AM - 10:00 PM'],
    })


def _riders():
    return pd.DataFrame({
        'rider_id': [1, 2, 3],
        'rider_name': ['Vikram Singh', 'Anil Kumar', 'Suresh Rao'],
        'sign_up': ['2022-01-05', '2022-07-19', '2023-02-11'],
    })


def _orders():
    rows = [
        (1, 1, 1, 'Chicken Biryani', 1, '2023-07-14', '13:15:00', 'Completed', 420.0),
        (2, 1, 1, 'Chicken Biryani', 2, '2023-12-02', '20:40:00', 'Completed', 840.0),
        (3, 1, 2, 'Paneer Butter Masala', 1, '2024-01-19', '19:05:00', 'Completed', 350.0),
        (4, 2, 2, 'Butter Chicken', 1, '2023-08-21', '12:30:00', 'Completed', 510.0),
        (5, 2, 3, 'Masala Dosa', 2, '2023-09-03', '08:45:00', 'Not Fulfilled', 260.0),
        (6, 3, 3, 'Masala Dosa', 1, '2023-04-11', '09:10:00', 'Completed', 130.0),
        (7, 3, 1, 'Chicken Biryani', 1, '2023-11-25', '23:50:00', 'Completed', 420.0),
        (8, 4, 2, 'Butter Chicken', 1, '2024-02-14', '21:20:00', 'Completed', 510.0),
        (9, 4, 2, 'Dal Makhani', 1, '2024-03-09', '14:00:00', 'Completed', 300.0),
        (10, 1, 3, 'Masala Dosa', 1, '2024-04-22', '10:25:00', 'Not Fulfilled', 130.0),
        (11, 2, 1, 'Mutton Rogan Josh', 1, '2023-12-30', '22:10:00', 'Completed', 650.0),
        (12, 3, 2, 'Butter Chicken', 2, '2023-06-18', '18:35:00', 'Completed', 1020.0),
    ]
    return pd.DataFrame(rows, columns=[
        'order_id', 'customer_id', 'restaurant_id', 'order_item', 'quantity',
        'order_date', 'order_time', 'order_status', 'total_amount'
    ])


def _deliveries():
    # orders 5 and 10 were never delivered; order 7 is delivered after midnight
    rows = [
        (1, 1, 'Delivered', '13:27:00', 1),
        (2, 2, 'Delivered', '20:58:00', 2),
        (3, 3, 'Delivered', '19:30:00', 1),
        (4, 4, 'Delivered', '12:44:00', 3),
        (6, 6, 'Delivered', '09:22:00', 2),
        (7, 7, 'Delivered', '00:12:00', 3),
        (8, 8, 'Delivered', '21:36:00', 1),
        (9, 9, 'Delivered', '14:19:00', 2),
        (11, 11, 'Delivered', '22:34:00', 3),
        (12, 12, 'Delivered', '18:48:00', 1),
    ]
    return pd.DataFrame(rows, columns=[
        'delivery_id', 'order_id', 'delivery_status', 'delivery_time', 'rider_id'
    ])


def build_tables():
    return {
        'customers': _customers(),
        'restaurants': _restaurants(),
        'riders': _riders(),
        'orders': _orders(),
        'deliveries': _deliveries(),
    }


@pytest.fixture
def tables():
    """Fresh raw snapshot, with dates and times as strings."""
    return build_tables()


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def csv_dir(tmp_path, tables):
    """The snapshot written as one CSV file per table."""
    input_dir = tmp_path / 'input'
    input_dir.mkdir()
    for name, df in tables.items():
        df.to_csv(input_dir / f"{name}.csv", index=False)
    return input_dir


@pytest.fixture
def config_file(tmp_path, csv_dir):
    """INI file reading the CSV snapshot and writing into tmp_path."""
    path = tmp_path / 'config.ini'
    path.write_text(
        "[LOGGING]\n"
        "level = INFO\n"
        f"file = {os.path.join(tmp_path, 'logs', 'reports.log')}\n"
        "\n"
        "[PATHS]\n"
        f"input_dir = {csv_dir}\n"
        f"output_dir = {tmp_path / 'output'}\n"
        "\n"
        "[SOURCE]\n"
        "type = csv\n"
        "\n"
        "[REPORTS]\n"
        "as_of = 2024-06-30\n"
        "quality_check = true\n"
    )
    return path


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def populated_engine(sqlite_engine, tables):
    """In-memory database holding the sample snapshot."""
    load_snapshot_to_db(sqlite_engine, tables)
    return sqlite_engine


@pytest.fixture
def database_config_file(tmp_path, tables):
    """INI file pointing at a SQLite database file holding the snapshot."""
    db_path = tmp_path / 'delivery.db'
    engine = create_engine(f"sqlite:///{db_path}")
    load_snapshot_to_db(engine, tables)
    engine.dispose()

    path = tmp_path / 'database.ini'
    path.write_text(
        "[DATABASE]\n"
        "type = sqlite\n"
        f"name = {db_path}\n"
        "\n"
        "[LOGGING]\n"
        f"file = {os.path.join(tmp_path, 'logs', 'reports.log')}\n"
        "\n"
        "[PATHS]\n"
        f"output_dir = {tmp_path / 'output'}\n"
        "\n"
        "[SOURCE]\n"
        "type = database\n"
        "\n"
        "[REPORTS]\n"
        "as_of = 2024-06-30\n"
    )
    return path
