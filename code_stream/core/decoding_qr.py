from typing import List, Union

import numpy as np
from PIL import Image
from pyzbar.pyzbar import decode as decode_symbols, ZBarSymbol
from pyzbar.pyzbar_error import PyZbarError

from .errors import DecoderError, SymbolNotFound

SYMBOL_TYPES = [ZBarSymbol.QRCODE]

Frame = Union[Image.Image, np.ndarray]


def _to_pil(frame: Frame) -> Image.Image:
    if isinstance(frame, Image.Image):
        return frame
    if isinstance(frame, np.ndarray):
        if frame.ndim == 3 and frame.shape[2] == 3:
            # OpenCV frames are BGR
            frame = np.ascontiguousarray(frame[:, :, ::-1])
        return Image.fromarray(frame)
    raise DecoderError(f'Unsupported frame type: {type(frame).__name__}')


def decode_frame(frame: Frame) -> List[str]:
    """Return the text of every QR symbol in the frame.

    Raises SymbolNotFound when the frame holds no symbol and DecoderError
    for everything else the decoding layer can fail on.
    """
    img = _to_pil(frame)
    try:
        found = decode_symbols(img, symbols=SYMBOL_TYPES)
    except (PyZbarError, TypeError, ValueError) as e:
        raise DecoderError(str(e)) from e
    if not found:
        raise SymbolNotFound()

    texts = []
    for symbol in found:
        try:
            texts.append(symbol.data.decode('utf-8'))
        except UnicodeDecodeError as e:
            raise DecoderError(f'Symbol is not UTF-8 text: {e}') from e
    return texts
