"""Integration tests for the CLI."""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest


def run_printpos(args: list[str], data_dir: Path) -> subprocess.CompletedProcess:
    """Run printpos CLI command against a data directory."""
    env = dict(os.environ)
    env["PRINTPOS_DATA_DIR"] = str(data_dir)
    env.pop("PRINTPOS_MACHINE_ID", None)
    env.pop("PRINTPOS_ORDER_PREFIX", None)
    return subprocess.run(
        [sys.executable, "-m", "printpos.cli"] + args,
        cwd=data_dir,
        env=env,
        capture_output=True,
        text=True,
    )


@pytest.fixture
def initialized(temp_dir, catalog_file):
    """Data directory with the sample catalog loaded."""
    result = run_printpos(["init", "--catalog", str(catalog_file)], temp_dir)
    assert result.returncode == 0, result.stderr
    return temp_dir


@pytest.fixture
def cart_file(temp_dir):
    path = temp_dir / "cart.json"
    path.write_text(
        json.dumps(
            {
                "lines": [{"product_id": "stiker", "qty": 26, "variant": "Glossy"}],
                "customer_name": "Budi",
                "customer_phone": "0812",
                "created_by": "kasir-1",
                "discount": 70000,
                "service_fee": 20000,
                "paid_amount": 200000,
            }
        )
    )
    return path


def _checkout(data_dir: Path, cart: Path) -> dict:
    result = run_printpos(["checkout", str(cart), "--json"], data_dir)
    assert result.returncode == 0, result.stderr
    return json.loads(result.stdout)["order"]


class TestInit:
    def test_init_loads_catalog(self, temp_dir, catalog_file):
        result = run_printpos(["init", "--catalog", str(catalog_file)], temp_dir)

        assert result.returncode == 0
        assert "Initialized catalog" in result.stdout
        assert "Products: 9" in result.stdout
        assert (temp_dir / "catalog.json").exists()

    def test_init_twice_fails(self, initialized):
        result = run_printpos(["init"], initialized)

        assert result.returncode == 1
        assert "already exists" in result.stderr

    def test_init_force_overwrites(self, initialized):
        result = run_printpos(["init", "--force"], initialized)

        assert result.returncode == 0
        assert "Products: 0" in result.stdout

    def test_unreadable_catalog_file(self, temp_dir):
        result = run_printpos(["init", "--catalog", str(temp_dir / "missing.json")], temp_dir)

        assert result.returncode == 1
        assert "Error:" in result.stderr


class TestQuote:
    def test_quote_area_product(self, initialized):
        result = run_printpos(
            [
                "quote", "spanduk", "--qty", "2", "--length", "3", "--width", "1",
                "--variant", "Flexi Korea", "--finishing", "mata-ayam",
            ],
            initialized,
        )

        assert result.returncode == 0, result.stderr
        assert "x2  @ Rp 135.000" in result.stdout
        assert "+ Mata Ayam: Rp 10.000" in result.stdout
        assert "Subtotal: Rp 280.000" in result.stdout

    def test_quote_json(self, initialized):
        result = run_printpos(["quote", "kartu-nama", "--qty", "600", "--json"], initialized)

        assert result.returncode == 0
        item = json.loads(result.stdout)
        assert item["unit_price"] == 1000
        assert item["subtotal"] == 600000

    def test_quote_advanced_groups(self, initialized):
        result = run_printpos(
            ["quote", "kaos", "--qty", "12", "--group", "sablon=1 Warna", "--text", "nama=Budi", "--json"],
            initialized,
        )

        assert result.returncode == 0, result.stderr
        assert json.loads(result.stdout)["subtotal"] == 85000 * 12 + 180000

    def test_quote_below_minimum(self, initialized):
        result = run_printpos(["quote", "kaos", "--qty", "10", "--group", "sablon=1 Warna"], initialized)

        assert result.returncode == 1
        assert "minimum order" in result.stderr

    def test_quote_unknown_product(self, initialized):
        result = run_printpos(["quote", "mug"], initialized)

        assert result.returncode == 1
        assert "Product not found" in result.stderr

    def test_quote_bad_group_argument(self, initialized):
        result = run_printpos(["quote", "kaos", "--qty", "12", "--group", "sablon"], initialized)

        assert result.returncode == 1
        assert "GROUP=VALUE" in result.stderr

    def test_quote_without_init(self, temp_dir):
        result = run_printpos(["quote", "stiker"], temp_dir)

        assert result.returncode == 1
        assert "printpos init" in result.stderr


class TestOrders:
    def test_checkout(self, initialized, cart_file):
        result = run_printpos(["checkout", str(cart_file)], initialized)

        assert result.returncode == 0, result.stderr
        assert "Created order JGL-A-" in result.stdout
        assert "Total:     Rp 600.000" in result.stdout
        assert "Remaining: Rp 400.000" in result.stdout
        assert "PARTIAL / PENDING" in result.stdout

    def test_checkout_invalid_cart(self, initialized, temp_dir):
        cart = temp_dir / "empty.json"
        cart.write_text(json.dumps({"lines": [], "customer_name": "Budi", "created_by": "kasir-1"}))

        result = run_printpos(["checkout", str(cart)], initialized)

        assert result.returncode == 1
        assert "cart is empty" in result.stderr

    def test_checkout_cart_line_not_an_object(self, initialized, temp_dir):
        cart = temp_dir / "bad-line.json"
        cart.write_text(json.dumps({"lines": ["stiker"], "customer_name": "Budi", "created_by": "kasir-1"}))

        result = run_printpos(["checkout", str(cart)], initialized)

        assert result.returncode == 1
        assert "Error: Invalid cart line" in result.stderr
        assert "Traceback" not in result.stderr

    def test_list_and_show(self, initialized, cart_file):
        order = _checkout(initialized, cart_file)

        listed = run_printpos(["orders", "list"], initialized)
        assert listed.returncode == 0
        assert "Orders (1):" in listed.stdout
        assert order["order_number"] in listed.stdout

        shown = run_printpos(["orders", "show", order["order_number"], "--json"], initialized)
        assert shown.returncode == 0
        assert json.loads(shown.stdout)["id"] == order["id"]

    def test_list_empty(self, initialized):
        result = run_printpos(["orders", "list"], initialized)

        assert result.returncode == 0
        assert "No orders found." in result.stdout

    def test_pay(self, initialized, cart_file):
        order = _checkout(initialized, cart_file)

        result = run_printpos(["orders", "pay", order["id"], "450000"], initialized)

        assert result.returncode == 0, result.stderr
        assert "PAID" in result.stdout
        assert "Change:    Rp 50.000" in result.stdout

    def test_pay_with_method_then_check(self, initialized, cart_file):
        order = _checkout(initialized, cart_file)

        paid = run_printpos(["orders", "pay", order["id"], "100000", "--method", "TRANSFER"], initialized)
        assert paid.returncode == 0, paid.stderr

        shown = run_printpos(["orders", "show", order["id"], "--json"], initialized)
        payments = json.loads(shown.stdout)["payments"]
        assert [p["amount"] for p in payments] == [200000, 100000]
        assert payments[1]["method"] == "TRANSFER"

        checked = run_printpos(["orders", "check", order["order_number"]], initialized)
        assert checked.returncode == 0
        assert f"{order['order_number']}: OK" in checked.stdout
        assert "Payments:   2" in checked.stdout

        as_json = run_printpos(["orders", "check", order["id"], "--json"], initialized)
        assert as_json.returncode == 0
        assert json.loads(as_json.stdout)["status"] == "OK"

    def test_pay_settled_order_fails(self, initialized, cart_file):
        order = _checkout(initialized, cart_file)
        run_printpos(["orders", "pay", order["id"], "400000"], initialized)

        again = run_printpos(["orders", "pay", order["id"], "1000"], initialized)
        assert again.returncode == 1
        assert "already paid" in again.stderr

    def test_cancel(self, initialized, cart_file):
        order = _checkout(initialized, cart_file)

        result = run_printpos(["orders", "cancel", order["id"], "--reason", "Salah desain"], initialized)
        assert result.returncode == 0
        assert "Reason: Salah desain" in result.stdout

        again = run_printpos(["orders", "cancel", order["id"], "--reason", "Lagi"], initialized)
        assert again.returncode == 1
        assert "already cancelled" in again.stderr

    def test_show_not_found(self, initialized):
        result = run_printpos(["orders", "show", "nope"], initialized)

        assert result.returncode == 1
        assert "Order not found" in result.stderr


class TestNormalize:
    def test_normalize_list(self, temp_dir):
        path = temp_dir / "records.json"
        path.write_text(
            json.dumps(
                [
                    {
                        "id": "old-1",
                        "orderNumber": "JGL-A-20240101-0003",
                        "items": [{"name": "Brosur", "quantity": 100, "price": 500}],
                    },
                    {"order_number": "JGL-A-20240101-0004"},
                ]
            )
        )

        result = run_printpos(["normalize", str(path)], temp_dir)

        assert result.returncode == 1
        orders = json.loads(result.stdout)
        assert len(orders) == 1
        assert orders[0]["order_number"] == "JGL-A-20240101-0003"
        assert orders[0]["items"][0]["id"] == "old-1-1"
        assert "Skipped None" in result.stderr

    def test_normalize_single_record(self, temp_dir):
        path = temp_dir / "record.json"
        path.write_text(json.dumps({"id": "a", "order_number": "N-1", "production_status": "done"}))

        result = run_printpos(["normalize", str(path)], temp_dir)

        assert result.returncode == 0
        assert json.loads(result.stdout)["production_status"] == "done"
        assert "not a known status" in result.stderr
