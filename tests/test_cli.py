import re
from pathlib import Path

from generate_query_types import main


def _generate(sources, output_dir):
    return main(["--sources", str(sources), "--output-dir", str(output_dir)])


def test_generates_one_file_per_entity(shop_sources, tmp_path, capsys):
    assert _generate(shop_sources, tmp_path) == 0

    package_dir = tmp_path / "com" / "example" / "shop"
    assert sorted(p.name for p in package_dir.iterdir()) == ["QCustomer.java", "QOrder.java"]
    assert not (tmp_path / "com" / "example" / "common").exists()

    out = capsys.readouterr().out
    assert "  -> QOrder" in out
    assert "  -> QCustomer" in out
    assert "Generated 2 query types" in out


def test_order_inherits_base_columns(shop_sources, tmp_path):
    _generate(shop_sources, tmp_path)
    code = (tmp_path / "com" / "example" / "shop" / "QOrder.java").read_text()

    assert code.startswith("package com.example.shop;\n")
    assert 'super(QOrder.class, forVariable(variable), "sales", "t_order");' in code
    assert "createPrimaryKey(id);" in code
    assert "createdAtText" not in code

    registrations = [line.strip() for line in code.splitlines()
                     if "ColumnMetadata.named(" in line]
    assert registrations == [
        'addMetadata(id, ColumnMetadata.named("id").withIndex(1).ofType(Types.BIGINT).withSize(19));',
        'addMetadata(createdAt, ColumnMetadata.named("created_at").withIndex(2)'
        '.ofType(Types.TIMESTAMP).withSize(29).withDigits(6));',
        'addMetadata(amount, ColumnMetadata.named("total_amount").withIndex(3)'
        '.ofType(Types.NUMERIC).withSize(12).withDigits(4));',
        'addMetadata(customerName, ColumnMetadata.named("customer_name").withIndex(4)'
        '.ofType(Types.VARCHAR).withSize(64).notNull());',
        'addMetadata(attributes, ColumnMetadata.named("attributes").withIndex(5)'
        '.ofType(Types.OTHER).withSize(2147483647));',
        'addMetadata(status, ColumnMetadata.named("status").withIndex(6)'
        '.ofType(Types.VARCHAR).withSize(0));',
    ]
    assert "     * Order total\n" in code
    assert "     * Surrogate key\n" in code


def test_bare_table_marker_uses_class_name(shop_sources, tmp_path):
    _generate(shop_sources, tmp_path)
    code = (tmp_path / "com" / "example" / "shop" / "QCustomer.java").read_text()

    assert 'public static final QCustomer customer = new QCustomer("Customer");' in code
    assert '"public", "Customer");' in code
    assert 'ColumnMetadata.named("customer_id").withIndex(1)' in code
    assert "createPrimaryKey(customerId);" in code


def test_missing_source_is_reported(tmp_path, capsys):
    assert _generate(tmp_path / "missing", tmp_path / "out") == 1
    assert "is not a file or directory" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_failed_write_leaves_no_partial_file(shop_sources, tmp_path, monkeypatch, capsys):
    original_write_text = Path.write_text

    def flaky_write_text(self, data, *args, **kwargs):
        if self.name == "QOrder.java":
            original_write_text(self, data[:40], *args, **kwargs)
            raise OSError("disk full")
        return original_write_text(self, data, *args, **kwargs)

    monkeypatch.setattr(Path, "write_text", flaky_write_text)

    assert _generate(shop_sources, tmp_path) == 1

    package_dir = tmp_path / "com" / "example" / "shop"
    assert not (package_dir / "QOrder.java").exists()
    assert (package_dir / "QCustomer.java").exists()

    captured = capsys.readouterr()
    assert "cannot write" in captured.err
    assert "Generated 1 query types" in captured.out


def test_output_inside_scanned_tree_is_not_rescanned(tmp_path, capsys):
    nested = tmp_path / "src"
    nested.mkdir()
    (nested / "Plain.java").write_text(
        "import org.springframework.data.relational.core.mapping.Table;\n"
        "@Table public class Plain { private String name; }\n")
    out_dir = nested / "generated"
    assert _generate(nested, out_dir) == 0
    assert _generate(nested, out_dir) == 0
    assert sorted(p.name for p in out_dir.iterdir()) == ["QPlain.java"]
    assert "Generated 1 query types" in capsys.readouterr().out


def test_regeneration_differs_only_in_timestamp(shop_sources, tmp_path):
    first_dir, second_dir = tmp_path / "first", tmp_path / "second"
    _generate(shop_sources, first_dir)
    _generate(shop_sources, second_dir)

    stamp = re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}")
    for name in ("QOrder.java", "QCustomer.java"):
        first = (first_dir / "com" / "example" / "shop" / name).read_text()
        second = (second_dir / "com" / "example" / "shop" / name).read_text()
        assert stamp.sub("<time>", first) == stamp.sub("<time>", second)
