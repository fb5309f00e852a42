"""Tests for CLI module."""

from pathlib import Path

import pytest

from sisgeagro.cli import (
    cmd_init,
    cmd_version,
    create_container,
    get_default_db_path,
    main,
)

CSV_HEADER = (
    "detalle;movimiento;formaPago;importe;rubro;subrubro;factura;"
    "fechaComprobante;empresa;cuit_cuil;selectedTaxes;selectedTaxesPercentages\n"
)


@pytest.fixture
def db_path(tmp_path) -> Path:
    path = tmp_path / "sisgeagro.db"
    assert main(["--database", str(path), "init"]) == 0
    return path


@pytest.fixture
def csv_file(tmp_path) -> Path:
    path = tmp_path / "movimientos.csv"
    path.write_text(
        CSV_HEADER
        + "Venta de soja;ingreso;Transferencia;5000;Ventas;Granos;;01/03/2024;"
        "Acopio SRL;30-22222222-2;;\n"
        + "Fertilizante;egreso;Efectivo;1000;Insumos;Fertilizantes;B-0100;02/03/2024;"
        "Agro SA;30-11111111-1;IVA;21\n",
        encoding="utf-8",
    )
    return path


class TestGetDefaultDbPath:
    def test_returns_path_in_home_directory(self):
        result = get_default_db_path()

        assert isinstance(result, Path)
        assert ".sisgeagro" in str(result)
        assert result.name == "sisgeagro.db"


class TestCreateContainer:
    def test_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dirs" / "test.db"

        with create_container(db_path) as container:
            assert container.repositories is not None

        assert db_path.exists()


class TestCmdInit:
    def test_creates_new_database(self, tmp_path, capsys):
        db_path = tmp_path / "test.db"

        class Args:
            database = str(db_path)
            force = False

        result = cmd_init(Args())

        assert result == 0
        assert db_path.exists()
        assert "Initialized database" in capsys.readouterr().out

    def test_refuses_existing_database_without_force(self, db_path, capsys):
        result = main(["--database", str(db_path), "init"])

        assert result == 1
        assert "already exists" in capsys.readouterr().out

    def test_force_reinitializes(self, db_path, csv_file):
        main(["-d", str(db_path), "import-csv", str(csv_file), "--user", "u"])

        assert main(["-d", str(db_path), "init", "--force"]) == 0
        with create_container(db_path) as container:
            assert container.repositories.movements.list_views() == []


class TestCmdStatus:
    def test_missing_database(self, tmp_path, capsys):
        result = main(["-d", str(tmp_path / "missing.db"), "status"])

        assert result == 1
        assert "No database found" in capsys.readouterr().out

    def test_counts(self, db_path, csv_file, capsys):
        main(["-d", str(db_path), "import-csv", str(csv_file), "-u", "u"])
        capsys.readouterr()

        result = main(["-d", str(db_path), "status"])

        output = capsys.readouterr().out
        assert result == 0
        assert "Entities: 2" in output
        assert "Taxes: 1" in output
        assert "ingreso: 1 movements" in output
        assert "egreso: 1 movements" in output


class TestCmdVersion:
    def test_prints_version(self, capsys):
        class Args:
            pass

        assert cmd_version(Args()) == 0
        assert "SisGeAgro v0.1.0" in capsys.readouterr().out


class TestCmdImportCsv:
    def test_imports_file(self, db_path, csv_file, capsys):
        result = main(["-d", str(db_path), "import-csv", str(csv_file), "-u", "user-1"])

        assert result == 0
        assert "Imported 2 of 2 rows" in capsys.readouterr().out

    def test_reports_failed_rows(self, db_path, tmp_path, capsys):
        path = tmp_path / "bad.csv"
        path.write_text(
            CSV_HEADER + "Compra;egreso;Efectivo;100;Insumos;Semillas;;02/03/2024;"
            "Agro SA;30-11111111-1;;\n",
            encoding="utf-8",
        )

        result = main(["-d", str(db_path), "import-csv", str(path), "-u", "user-1"])

        output = capsys.readouterr().out
        assert result == 1
        assert "Imported 0 of 1 rows" in output
        assert "Row 2: Missing required field: billNumber" in output

    def test_missing_file(self, db_path, tmp_path, capsys):
        result = main(
            ["-d", str(db_path), "import-csv", str(tmp_path / "none.csv"), "-u", "u"]
        )

        assert result == 1
        assert "File not found" in capsys.readouterr().out

    def test_user_is_required(self, db_path, csv_file):
        with pytest.raises(SystemExit):
            main(["-d", str(db_path), "import-csv", str(csv_file)])


class TestCmdStats:
    def test_prints_totals(self, db_path, csv_file, capsys):
        main(["-d", str(db_path), "import-csv", str(csv_file), "-u", "u"])
        capsys.readouterr()

        result = main(["-d", str(db_path), "stats", "--start", "2024-03-01", "--end", "2024-03-31"])

        output = capsys.readouterr().out
        assert result == 0
        assert "Movements: 2" in output
        assert "5,000.00" in output
        assert "4,000.00" in output
        assert "INSUMOS: egreso 1,000.00" in output

    def test_invalid_date(self, db_path, capsys):
        result = main(["-d", str(db_path), "stats", "--start", "01/03/2024", "--end", "2024-03-31"])

        assert result == 1
        assert "Invalid date" in capsys.readouterr().out


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()
