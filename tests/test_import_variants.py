import json

import pytest

from factories import make_product, make_variant
from import_variants import (
    chunked, extract_metafields, parse_attribute_column, process_batch, run_import,
)
from utils.utils_io import write_csv_file

COLUMNS = ["product_id", "variant_id", "variant_title", "attribute_custom_popular", "attribute_custom_nielsen_sku"]


def _seed(shopify, count):
    variants = [make_variant(f"gid://shopify/ProductVariant/{i}", f"Size {i}") for i in range(1, count + 1)]
    shopify.add_product(make_product("gid://shopify/Product/123", "Oak Frame", variants))
    return [v["id"] for v in variants]


def _rows(variant_ids, popular="true"):
    return [{
        "product_id": "gid://shopify/Product/123",
        "variant_id": vid,
        "variant_title": f"Size {i}",
        "attribute_custom_popular": popular,
        "attribute_custom_nielsen_sku": "",
    } for i, vid in enumerate(variant_ids, start=1)]


def _csv(tmp_path, rows, name="variants-export.csv"):
    path = tmp_path / name
    write_csv_file(path, COLUMNS, rows)
    return str(path)


def test_parse_attribute_column():
    assert parse_attribute_column("attribute_custom_popular") == ("custom", "popular")
    assert parse_attribute_column("attribute_custom_nielsen_sku") == ("custom", "nielsen_sku")
    assert parse_attribute_column("attribute_custom") is None
    assert parse_attribute_column("attribute_custom_") is None
    assert parse_attribute_column("variant_title") is None


def test_extract_metafields_uses_populated_attribute_columns_only():
    row = {"variant_id": "1", "variant_title": "Small", "attribute_custom_popular": "true",
           "attribute_custom_nielsen_sku": "", "attribute_framing_depth": "40"}

    metafields = extract_metafields(row, {("framing", "depth"): "number_integer"})

    assert metafields == [
        {"namespace": "custom", "key": "popular", "value": "true", "type": "single_line_text_field"},
        {"namespace": "framing", "key": "depth", "value": "40", "type": "number_integer"},
    ]


def test_chunked():
    assert [len(b) for b in chunked(list(range(5)), 2)] == [2, 2, 1]
    assert list(chunked([], 3)) == []
    with pytest.raises(ValueError):
        list(chunked([1], 0))


def test_rows_without_attribute_values_are_skipped(shopify, config):
    rows = [{"variant_id": "gid://shopify/ProductVariant/1", "attribute_custom_popular": ""},
            {"variant_id": "gid://shopify/ProductVariant/2"}]

    results = process_batch(config.endpoint, config.headers, rows, dry_run=False)

    assert (results["success"], results["failed"], results["skipped"]) == (0, 0, 2)
    assert [d["status"] for d in results["details"]] == ["skipped", "skipped"]
    assert shopify.calls == []


def test_row_without_variant_id_fails(shopify, config):
    rows = [{"variant_id": "", "variant_title": "Orphan", "attribute_custom_popular": "true"}]

    results = process_batch(config.endpoint, config.headers, rows, dry_run=False)

    assert results["failed"] == 1
    assert results["details"][0]["error"] == "Row has no variant_id"
    assert shopify.calls == []


def test_rejected_record_does_not_stop_the_run(shopify, config, tmp_path, sleeps):
    variant_ids = _seed(shopify, 5)
    shopify.rejected[variant_ids[2]] = "Value must be true or false"
    path = _csv(tmp_path, _rows(variant_ids))

    report_df, summary = run_import(config=config, input_path=path, batch_size=10)

    assert (summary["success"], summary["failed"], summary["skipped"]) == (4, 1, 0)
    attempted = [v["variants"][0]["id"] for _, v in shopify.operations("productVariantsBulkUpdate")]
    assert attempted == variant_ids
    assert list(report_df["status"]) == ["success", "success", "failed", "success", "success"]
    assert "Value must be true or false" in report_df.loc[2, "error"]


def test_transport_failure_is_recorded_per_record(shopify, config, tmp_path, sleeps):
    variant_ids = _seed(shopify, 3)
    shopify.unreachable.add(variant_ids[0])
    path = _csv(tmp_path, _rows(variant_ids))

    _, summary = run_import(config=config, input_path=path)

    assert (summary["success"], summary["failed"]) == (2, 1)
    with open(summary["results_path"], encoding="utf-8") as f:
        details = json.load(f)["details"]
    assert "connection reset" in details[0]["error"]


def test_unknown_variant_fails_without_mutation(shopify, config, tmp_path, sleeps):
    _seed(shopify, 1)
    path = _csv(tmp_path, _rows(["gid://shopify/ProductVariant/999"]))

    _, summary = run_import(config=config, input_path=path)

    assert summary["failed"] == 1
    assert shopify.operations("productVariantsBulkUpdate") == []


def test_dry_run_matches_live_classification_without_requests(shopify, config, tmp_path, sleeps, messages):
    variant_ids = _seed(shopify, 3)
    rows = _rows(variant_ids)
    rows[1]["attribute_custom_popular"] = ""
    path = _csv(tmp_path, rows)

    dry_df, dry_summary = run_import(config=config, input_path=path, dry_run=True, batch_size=1,
                                     progress=messages)
    assert shopify.calls == []
    assert sleeps == []
    assert any("[DRY RUN] Would update 1 metafields" in m for m in messages)
    assert any("custom.popular = true" in m for m in messages)

    live_df, live_summary = run_import(config=config, input_path=path, batch_size=1)
    assert list(dry_df["status"]) == list(live_df["status"]) == ["success", "skipped", "success"]
    assert list(dry_df["action"]) == ["dry-run", "skipped", "dry-run"]
    assert len(shopify.operations("productVariantsBulkUpdate")) == 2


def test_pause_between_batches_in_live_mode_only(shopify, config, tmp_path, sleeps):
    path = _csv(tmp_path, _rows(_seed(shopify, 5)))

    _, summary = run_import(config=config, input_path=path, batch_size=2)

    assert summary["batches"] == 3
    assert sleeps == [1.0, 1.0]


def test_two_variant_scenario_writes_results_artifact(shopify, config, tmp_path, sleeps):
    variant_ids = _seed(shopify, 2)
    path = _csv(tmp_path, _rows(variant_ids))

    _, summary = run_import(config=config, input_path=path)

    assert len(shopify.operations("productVariantsBulkUpdate")) == 2
    _, variables = shopify.operations("productVariantsBulkUpdate")[0]
    assert variables["productId"] == "gid://shopify/Product/123"
    assert variables["variants"][0]["metafields"] == [
        {"namespace": "custom", "key": "popular", "value": "true", "type": "single_line_text_field"},
    ]

    results_file = tmp_path / "variants-export-import-results.json"
    assert summary["results_path"] == str(results_file)
    payload = json.loads(results_file.read_text(encoding="utf-8"))
    assert (payload["success"], payload["failed"], payload["skipped"]) == (2, 0, 0)
    assert [d["variant_id"] for d in payload["details"]] == variant_ids


def test_declared_metafield_types_are_sent(shopify, config, tmp_path, sleeps):
    shopify.definitions = [("custom", "popular", "boolean")]
    path = _csv(tmp_path, _rows(_seed(shopify, 1)))

    run_import(config=config, input_path=path)

    _, variables = shopify.operations("productVariantsBulkUpdate")[0]
    assert variables["variants"][0]["metafields"][0]["type"] == "boolean"


def test_definitions_failure_falls_back_to_default_type(shopify, config, tmp_path, sleeps, messages):
    shopify.failing_operations.add("getMetafieldDefinitions")
    path = _csv(tmp_path, _rows(_seed(shopify, 1)))

    _, summary = run_import(config=config, input_path=path, progress=messages)

    assert summary["success"] == 1
    _, variables = shopify.operations("productVariantsBulkUpdate")[0]
    assert variables["variants"][0]["metafields"][0]["type"] == "single_line_text_field"
    assert any(m.startswith("[WARN] Could not fetch metafield definitions") for m in messages)
    assert (tmp_path / "variants-export-import-results.json").exists()


def test_dry_run_notes_deferred_type_lookup(shopify, config, tmp_path, messages):
    path = _csv(tmp_path, _rows(["gid://shopify/ProductVariant/1"]))

    run_import(config=config, input_path=path, dry_run=True, progress=messages)

    assert any("not looked up in a dry run" in m for m in messages)


def test_header_without_variant_id_is_fatal(shopify, config, tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("sku,attribute_custom_popular\nA1,true\n", encoding="utf-8")

    with pytest.raises(ValueError):
        run_import(config=config, input_path=str(path))
    assert shopify.calls == []


def test_missing_input_is_fatal(shopify, config, tmp_path):
    with pytest.raises(FileNotFoundError):
        run_import(config=config, input_path=str(tmp_path / "nope.csv"))
    assert shopify.calls == []
