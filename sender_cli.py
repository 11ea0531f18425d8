import argparse, os
from code_stream.core.chunking import split_payload, read_payload, DEFAULT_CHUNK_SIZE
from code_stream.core.encoding_qr import write_qr_frames, QR_SCALE
from code_stream.core.logging_config import setup_logging


def write_chunk_log(chunks, out_dir):
    # Raw wire strings, one per line, so a receiver can replay without a camera
    path = os.path.join(out_dir, 'chunks.jsonl')
    with open(path, 'w', encoding='utf-8') as f:
        for chunk in chunks:
            f.write(chunk + '\n')
    return path


def main():
    ap = argparse.ArgumentParser(description="Split a file into a series of QR chunk images")
    ap.add_argument('--input', required=True, help='File to send')
    ap.add_argument('--out', required=True, help='Output directory for frames')
    ap.add_argument('--chunk-size', type=int, default=DEFAULT_CHUNK_SIZE,
                    help='Encoded characters per QR code')
    ap.add_argument('--checksum', action='store_true', help='Attach a CRC32 to every chunk')
    ap.add_argument('--scale', type=int, default=QR_SCALE, help='Pixels per QR module')
    ap.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING or ERROR')
    args = ap.parse_args()
    setup_logging(log_level=args.log_level)

    if not os.path.isfile(args.input):
        raise SystemExit('Input file not found')
    if args.chunk_size < 1:
        raise SystemExit('--chunk-size must be at least 1')

    os.makedirs(args.out, exist_ok=True)
    payload = read_payload(args.input)
    chunks = split_payload(payload, args.chunk_size, with_checksum=args.checksum)
    if not chunks:
        raise SystemExit('Input file is empty')

    write_chunk_log(chunks, args.out)
    paths = write_qr_frames(chunks, args.out, scale=args.scale)
    print(f"Source file: '{args.input}' ({len(payload)} bytes)")
    print(f"Generated {len(paths)} QR frames.")
    print("Frames written to", args.out)

if __name__ == '__main__':
    main()
