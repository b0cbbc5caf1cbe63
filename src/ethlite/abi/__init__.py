"""
ABI descriptors, fragment parsing and the encode/decode codec.
"""

from ethlite.abi.codec import (
    decode_arguments,
    decode_log,
    decode_return,
    decode_revert_data,
    encode,
    encode_arguments,
    encode_topic,
    event_topic,
    function_selector,
)
from ethlite.abi.parser import canonical_type, parse_abi, parse_event, parse_function
from ethlite.abi.types import AbiEvent, AbiFunction, AbiParam, ContractAbi, Mutability

__all__ = [
    # Descriptors
    "AbiParam",
    "AbiFunction",
    "AbiEvent",
    "ContractAbi",
    "Mutability",
    # Parsing
    "parse_abi",
    "parse_function",
    "parse_event",
    "canonical_type",
    # Codec
    "encode",
    "encode_arguments",
    "decode_arguments",
    "decode_return",
    "decode_log",
    "decode_revert_data",
    "encode_topic",
    "event_topic",
    "function_selector",
]
