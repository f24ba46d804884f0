from .address import Address, parse_address_list
from .decoder import (
    MIME_HEADER,
    OUTPUT_CHARSET,
    EncodingKind,
    decode,
    decode_header_block,
    decode_mime_header,
    encoding_from_name,
    split_header_block,
    transcode,
)
from .structure import (
    BodyContent,
    BodyPartWalker,
    PartRole,
    classify,
    mime_type_of,
    parameters_from_structure,
    type_id_to_string,
)

__all__ = [
    "Address",
    "BodyContent",
    "BodyPartWalker",
    "EncodingKind",
    "MIME_HEADER",
    "OUTPUT_CHARSET",
    "PartRole",
    "classify",
    "decode",
    "decode_header_block",
    "decode_mime_header",
    "encoding_from_name",
    "mime_type_of",
    "parameters_from_structure",
    "parse_address_list",
    "split_header_block",
    "transcode",
    "type_id_to_string",
]
