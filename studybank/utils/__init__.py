"""Utility modules."""
from studybank.utils.image_utils import (
    decode_base64_image,
    encode_base64_image,
    extract_image_filenames,
    filename_to_image_id,
    guess_image_mime,
    image_extension,
    is_safe_image_filename,
    references_image,
)
from studybank.utils.json_utils import (
    dump_json_column,
    json_dump,
    json_load,
    load_json_column,
    read_json_file,
    write_json_file,
)
from studybank.utils.text_utils import normalize_text, slugify, strip_diacritics
from studybank.utils.time_utils import add_days_iso, today_iso, utc_now

__all__ = [
    "decode_base64_image",
    "encode_base64_image",
    "extract_image_filenames",
    "filename_to_image_id",
    "guess_image_mime",
    "image_extension",
    "is_safe_image_filename",
    "references_image",
    "dump_json_column",
    "json_dump",
    "json_load",
    "load_json_column",
    "read_json_file",
    "write_json_file",
    "normalize_text",
    "slugify",
    "strip_diacritics",
    "add_days_iso",
    "today_iso",
    "utc_now",
]
