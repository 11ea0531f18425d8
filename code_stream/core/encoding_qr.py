import io
import os
from typing import Iterable, Iterator, List, Tuple

import segno
from PIL import Image

QR_ERROR_LEVEL = 'l'  # lowest correction leaves the most room for data
QR_SCALE = 6


def chunks_to_qr_frames(chunks: Iterable[str]) -> Iterator[Tuple[int, 'segno.QRCode']]:
    """One QR code per wire chunk, in sequence order."""
    for idx, chunk in enumerate(chunks):
        qr = segno.make(chunk, error=QR_ERROR_LEVEL, micro=False)
        yield idx, qr


def qr_to_image(qr: 'segno.QRCode', scale: int = QR_SCALE) -> Image.Image:
    buff = io.BytesIO()
    qr.save(buff, kind='png', scale=scale)
    buff.seek(0)
    img = Image.open(buff)
    img.load()
    return img


def write_qr_frames(chunks: Iterable[str], out_dir: str, scale: int = QR_SCALE) -> List[str]:
    """Save each chunk as chunk_<seq>.png under out_dir; returns the paths."""
    paths = []
    for idx, qr in chunks_to_qr_frames(chunks):
        fname = os.path.join(out_dir, f'chunk_{idx:05d}.png')
        qr.save(fname, scale=scale)
        paths.append(fname)
    return paths
