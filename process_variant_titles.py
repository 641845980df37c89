"""
Offline clean-up of an exported variants CSV.

Variant titles in the form "{label} {sku}" are split: the SKU goes to the
custom.nielsen_sku metafield column and the label to custom.variant_label.
Titles without a SKU suffix are copied whole into the label column.
variant_title itself is left alone.
"""
import re
from typing import Dict, List, Optional, Tuple

from constants import NIELSEN_SKU_COLUMN, TITLES_INPUT_DEFAULT, TITLES_OUTPUT_DEFAULT, VARIANT_LABEL_COLUMN
from core import Progress, log
from utils.utils_io import read_csv_file, write_csv_file

TITLE_SKU_RE = re.compile(r"^(.+?)\s+(R[A-Z0-9]+)$")


def split_title_and_sku(variant_title: Optional[str]) -> Optional[Tuple[str, str]]:
    if not variant_title or not isinstance(variant_title, str):
        return None
    m = TITLE_SKU_RE.match(variant_title)
    if not m:
        return None
    return m.group(1).strip(), m.group(2)


def _set(result: Dict[str, str], column: str, value: str, changes: List[str]) -> None:
    old = result.get(column, "")
    if old != value:
        changes.append(f'{column}: "{old}" → "{value}"')
        result[column] = value


def process_row(row: Dict[str, str]) -> Tuple[Dict[str, str], List[str]]:
    result = dict(row)
    changes: List[str] = []
    variant_title = row.get("variant_title", "")

    split = split_title_and_sku(variant_title)
    if split:
        label, sku = split
        _set(result, NIELSEN_SKU_COLUMN, sku, changes)
        _set(result, VARIANT_LABEL_COLUMN, label, changes)
    else:
        _set(result, VARIANT_LABEL_COLUMN, variant_title, changes)
    return result, changes


def run_title_processing(*, input_path: str = TITLES_INPUT_DEFAULT, output_path: str = TITLES_OUTPUT_DEFAULT,
                         dry_run: bool = False, progress: Progress = None) -> Dict:
    log("🔍 Processing variant titles...", progress)
    log(f"📁 Input file: {input_path}", progress)
    log(f"📁 Output file: {output_path}", progress)
    if dry_run:
        log("🧪 DRY RUN MODE - No files will be written", progress)

    columns, rows = read_csv_file(input_path, progress)
    for column in (NIELSEN_SKU_COLUMN, VARIANT_LABEL_COLUMN):
        if column not in columns:
            columns.append(column)
    log(f"📊 Found {len(rows)} rows to process", progress)

    processed_rows = []
    changed_rows = 0
    total_changes = 0
    for index, row in enumerate(rows, start=1):
        result, changes = process_row(row)
        if changes:
            changed_rows += 1
            total_changes += len(changes)
            log(f"\n📝 Row {index} ({row.get('variant_id', '')}):", progress)
            for change in changes:
                log(f"   {change}", progress)
        processed_rows.append(result)

    log("\n✅ Processing complete!", progress)
    log(f"   - Rows processed: {changed_rows}/{len(rows)}", progress)
    log(f"   - Total changes: {total_changes}", progress)

    written = False
    if dry_run:
        log("🧪 Dry run complete - no files written", progress)
    elif changed_rows:
        write_csv_file(output_path, columns, processed_rows)
        written = True
        log(f"💾 Output file written: {output_path}", progress)
    else:
        log("ℹ️  No changes needed - no output file written", progress)

    return {
        "rows": len(rows),
        "changed_rows": changed_rows,
        "total_changes": total_changes,
        "output_path": output_path if written else "",
        "written": written,
    }
