import pandas as pd
import pytest

from delivery_reports.evaluator import ReportSpec, evaluate
from delivery_reports.loading.writer import export_results_to_csv, format_result
from delivery_reports.main import init_database, list_reports, main, parse_params, run_report


def test_parse_params():
    assert parse_params(['top_n=3', ' customer_name = Priya Sharma ']) == {
        'top_n': '3', 'customer_name': 'Priya Sharma'
    }
    with pytest.raises(ValueError):
        parse_params(['top_n'])


def test_list_reports_shows_parameters():
    lines = list_reports()
    assert lines[0].split()[:2] == ['1', 'top_dishes_for_customer']
    assert any('--param top_n=<int>' in line for line in lines)
    assert sum(1 for line in lines if not line.startswith('      ')) == 20


class TestRunReport:

    def test_success_statistics(self, config_file):
        statistics = run_report('5', config_file=str(config_file))
        assert statistics['status'] == 'success'
        assert statistics['report'] == 'orders_without_delivery'
        assert statistics['as_of'] == '2024-06-30'
        assert set(statistics['stages']) == {'ingestion', 'quality_check', 'evaluation'}
        assert statistics['stages']['ingestion']['rows_processed'] == {
            'deliveries': 10, 'orders': 12, 'restaurants': 3
        }
        assert statistics['stages']['evaluation']['rows_generated'] == 2

    def test_parameters_and_no_quality_check(self, config_file):
        statistics = run_report(
            'top_dishes_for_customer',
            config_file=str(config_file),
            params={'top_n': '1'},
            quality_check=False
        )
        assert 'quality_check' not in statistics['stages']
        assert statistics['result'].rows == [('Arjun Mehta', 'Chicken Biryani', 2, 1)]

    def test_parameters_from_config_section(self, config_file):
        with open(config_file, 'a') as f:
            f.write("\n[report:high_value_customers]\nmin_spent = 1500\n")
        statistics = run_report('high_value_customers', config_file=str(config_file))
        assert [row[0] for row in statistics['result'].rows] == [1, 3]

        statistics = run_report(
            'high_value_customers', config_file=str(config_file), params={'min_spent': '1700'}
        )
        assert [row[0] for row in statistics['result'].rows] == [1]

    def test_export(self, config_file, tmp_path):
        statistics = run_report('rider_ratings', config_file=str(config_file), export_csv=True)
        path = statistics['stages']['export']['file_paths']['rider_ratings']
        exported = pd.read_csv(path)
        assert exported.columns.tolist() == ['rider_id', 'stars', 'total_ratings']
        assert len(exported) == 7

    def test_failure_is_reported(self, config_file):
        statistics = run_report('99', config_file=str(config_file))
        assert statistics['status'] == 'failed'
        assert "Unknown report '99'" in statistics['error']

    def test_database_source(self, database_config_file):
        statistics = run_report('city_revenue_ranking', config_file=str(database_config_file))
        assert statistics['status'] == 'success'
        assert statistics['result'].rows == [('Mumbai', 2720.0, 1), ('Delhi', 1530.0, 2)]


class TestCli:

    def test_list(self, capsys):
        assert main(['list']) == 0
        assert 'seasonal_item_demand' in capsys.readouterr().out

    def test_run(self, config_file, capsys):
        code = main(['--config', str(config_file), 'run', '18', '--no-quality-check'])
        out = capsys.readouterr().out
        assert code == 0
        assert 'fastest_avg_minutes' in out
        assert 'Status: success' in out

    def test_run_with_as_of_and_param(self, config_file, capsys):
        code = main([
            '--config', str(config_file), 'run', 'city_revenue_ranking',
            '--as-of', '2025-01-15', '--param', 'year=2024'
        ])
        out = capsys.readouterr().out
        assert code == 0
        assert 'Delhi' in out

    def test_run_max_rows(self, config_file, capsys):
        code = main([
            '--config', str(config_file), 'run', 'rider_average_delivery_time', '--max-rows', '1'
        ])
        table = capsys.readouterr().out.split('Report Execution Summary')[0]
        assert code == 0
        assert table.split() == ['rider_id', 'deliveries', 'avg_delivery_minutes', '1', '4', '16.5']

    def test_bad_parameter_value(self, config_file, capsys):
        code = main(['--config', str(config_file), 'run', '1', '--param', 'top_n=many'])
        assert code == 1
        assert 'top_n' in capsys.readouterr().out

    def test_malformed_parameter(self, config_file):
        with pytest.raises(SystemExit):
            main(['--config', str(config_file), 'run', '1', '--param', 'top_n'])


class TestWriter:

    def test_format_result(self, tables):
        result = evaluate(ReportSpec(source='riders', select=('rider_id',), limit=2), tables)
        assert format_result(result).split() == ['rider_id', '1', '2']

    def test_format_result_max_rows(self, tables):
        result = evaluate(ReportSpec(source='riders', select=('rider_id',)), tables)
        assert format_result(result, max_rows=1).split() == ['rider_id', '1']

    def test_format_empty_result(self, tables):
        result = evaluate(ReportSpec(source='riders', limit=0), tables)
        assert format_result(result) == '(no rows)'

    def test_empty_result_exports_header(self, tables, tmp_path):
        result = evaluate(ReportSpec(source='riders', select=('rider_id', 'rider_name'), limit=0), tables)
        paths = export_results_to_csv({'riders': result}, str(tmp_path / 'out'))
        with open(paths['riders']) as f:
            assert f.read().strip() == 'rider_id,rider_name'


@pytest.fixture
def seed_config_file(tmp_path, csv_dir):
    """INI file reading the CSV snapshot and reporting from a SQLite file."""
    path = tmp_path / 'seed.ini'
    path.write_text(
        "[DATABASE]\n"
        "type = sqlite\n"
        f"name = {tmp_path / 'seeded.db'}\n"
        "\n"
        "[LOGGING]\n"
        f"file = {tmp_path / 'logs' / 'reports.log'}\n"
        "\n"
        "[PATHS]\n"
        f"input_dir = {csv_dir}\n"
        f"output_dir = {tmp_path / 'output'}\n"
        "\n"
        "[SOURCE]\n"
        "type = database\n"
        "\n"
        "[REPORTS]\n"
        "as_of = 2024-06-30\n"
    )
    return path


class TestInitDatabase:

    def test_creates_empty_tables(self, seed_config_file):
        statistics = init_database(config_file=str(seed_config_file))
        assert statistics['status'] == 'success'
        assert statistics['stages']['loading']['rows_processed'] == {}

        result = run_report('rider_ratings', config_file=str(seed_config_file))
        assert result['status'] == 'success'
        assert result['result'].rows == []

    def test_loads_csv_snapshot(self, seed_config_file):
        statistics = init_database(config_file=str(seed_config_file), load_csv=True)
        assert statistics['status'] == 'success'
        assert statistics['stages']['loading']['rows_processed'] == {
            'customers': 4, 'restaurants': 3, 'riders': 3, 'orders': 12, 'deliveries': 10
        }

        result = run_report('city_revenue_ranking', config_file=str(seed_config_file))
        assert result['result'].rows == [('Mumbai', 2720.0, 1), ('Delhi', 1530.0, 2)]

    def test_cli(self, seed_config_file, capsys):
        code = main(['--config', str(seed_config_file), 'init-db', '--load-csv'])
        out = capsys.readouterr().out
        assert code == 0
        assert 'Database Initialisation Summary' in out
        assert 'Status: success' in out

    def test_failure_is_reported(self, config_file, tmp_path):
        with open(config_file, 'a') as f:
            f.write(f"\n[DATABASE]\ntype = sqlite\nname = {tmp_path / 'missing' / 'x.db'}\n")
        statistics = init_database(config_file=str(config_file))
        assert statistics['status'] == 'failed'
        assert 'error' in statistics
