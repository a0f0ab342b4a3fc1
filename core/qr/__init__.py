"""
二维码编解码模块
"""
from .qr_codec import (
    decode_message,
    encode_message,
    load_image,
    read_message,
    save_image,
    write_message
)

__all__ = [
    "decode_message",
    "encode_message",
    "load_image",
    "read_message",
    "save_image",
    "write_message"
]
