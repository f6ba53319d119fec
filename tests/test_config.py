import pandas as pd
import pytest

from delivery_reports.config import Config
from delivery_reports.db.engine import build_connection_string, create_db_engine


class TestConfig:

    def test_defaults_without_file(self, tmp_path):
        config = Config(str(tmp_path / 'absent.ini'))
        assert config.get_source_type() == 'csv'
        assert config.get_input_path() == 'data/input'
        assert config.is_quality_check_enabled() is True
        assert config.get_as_of() == pd.Timestamp.today().normalize()

    def test_values_from_file(self, config_file, csv_dir, tmp_path):
        config = Config(str(config_file))
        assert config.get_as_of() == pd.Timestamp('2024-06-30')
        assert config.get_input_path('orders.csv') == str(csv_dir / 'orders.csv')
        assert config.get_output_path() == str(tmp_path / 'output')
        assert (tmp_path / 'output').is_dir()

    def test_report_sections(self, config_file):
        with open(config_file, 'a') as f:
            f.write("\n[report:top_dishes_for_customer]\ntop_n = 2\n")
        config = Config(str(config_file))
        assert config.get_report_params('top_dishes_for_customer') == {'top_n': '2'}
        assert config.get_report_params('rider_ratings') == {}

    def test_unsupported_source(self, tmp_path):
        path = tmp_path / 'bad.ini'
        path.write_text(
            "[LOGGING]\n"
            f"file = {tmp_path / 'reports.log'}\n"
            "[SOURCE]\n"
            "type = parquet\n"
        )
        with pytest.raises(ValueError):
            Config(str(path)).get_source_type()


class TestConnectionString:

    def test_sqlite(self):
        assert build_connection_string({'type': 'sqlite', 'name': 'data/delivery.db'}) == 'sqlite:///data/delivery.db'
        assert build_connection_string({'type': 'sqlite', 'name': ':memory:'}) == 'sqlite://'
        assert build_connection_string({'type': 'sqlite', 'name': ''}) == 'sqlite://'

    def test_postgresql(self):
        db_config = {
            'type': 'postgresql', 'name': 'delivery', 'host': 'db', 'port': '5432',
            'user': 'reports', 'password': 'secret'
        }
        assert build_connection_string(db_config) == 'postgresql://reports:secret@db:5432/delivery'

    def test_mysql_uses_pymysql_driver(self):
        db_config = {
            'type': 'mysql', 'name': 'delivery', 'host': 'db', 'port': '3306',
            'user': 'reports', 'password': 'secret'
        }
        assert build_connection_string(db_config) == 'mysql+pymysql://reports:secret@db:3306/delivery'

    def test_explicit_url_wins(self):
        db_config = {'type': 'postgresql', 'url': 'sqlite:///override.db', 'name': 'ignored'}
        assert build_connection_string(db_config) == 'sqlite:///override.db'

    def test_unsupported(self):
        with pytest.raises(ValueError):
            build_connection_string({'type': 'oracle'})

    def test_engine_from_config(self, database_config_file):
        engine = create_db_engine(Config(str(database_config_file)))
        try:
            assert engine.url.get_backend_name() == 'sqlite'
        finally:
            engine.dispose()
