import argparse, os, glob
from PIL import Image
from code_stream.core.assembler import StreamAssembler
from code_stream.core.checksum import verify_crc32
from code_stream.core.errors import StreamError
from code_stream.core.logging_config import setup_logging
from code_stream.core.session import ScanSession

IMAGE_PATTERNS = ('*.png', '*.jpg', '*.jpeg')


def feed_chunk_log(session, path):
    with open(path, encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line:
                report(session.process_text(line), path)


def feed_frames(session, frame_files):
    for fp in frame_files:
        with Image.open(fp) as img:
            outcomes = session.process_frame(img.convert('RGB'))
        if not outcomes:
            print(f"No symbol decoded in {os.path.basename(fp)}")
        for outcome in outcomes:
            report(outcome, fp)


def report(outcome, source):
    name = os.path.basename(source)
    if isinstance(outcome, StreamError):
        print(f"{name}: {outcome.message}")
    elif outcome.is_duplicate:
        print(f"{name}: duplicate chunk {outcome.sequence} of {outcome.stream_id}")
    else:
        p = outcome.progress
        print(f"{name}: chunk {outcome.sequence} of {outcome.stream_id} "
              f"({p.received}/{p.total}, {p.percentage}%)")


def write_streams(assembler, out_dir):
    written = 0
    for summary in assembler.active_streams():
        result = assembler.reconstruct(summary.stream_id)
        if isinstance(result, StreamError):
            print(f"Stream {summary.stream_id}: {result.message}")
            if summary.progress.missing:
                print(f"  Missing chunks: {summary.progress.missing}")
            continue
        out_path = os.path.join(out_dir, f"{summary.stream_id}.bin")
        with open(out_path, 'wb') as f:
            f.write(result.data)
        print(f"Reconstructed {result.size} bytes from {result.chunks} chunks to {out_path}")
        written += 1
    return written


def main():
    ap = argparse.ArgumentParser(description="Reassemble streams from captured QR chunk frames")
    ap.add_argument('--frames', required=True, help='Directory containing captured frames or chunks.jsonl')
    ap.add_argument('--out', required=True, help='Output directory for reconstructed files')
    ap.add_argument('--verify-checksum', action='store_true', help='Reject chunks whose CRC32 does not match')
    ap.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING or ERROR')
    args = ap.parse_args()
    setup_logging(log_level=args.log_level)

    if not os.path.isdir(args.frames):
        raise SystemExit('Frames directory not found')

    os.makedirs(args.out, exist_ok=True)
    assembler = StreamAssembler(checksum_verifier=verify_crc32 if args.verify_checksum else None)
    session = ScanSession(assembler)

    chunk_log = os.path.join(args.frames, 'chunks.jsonl')
    if os.path.exists(chunk_log):
        print(f"Replaying {chunk_log}")
        feed_chunk_log(session, chunk_log)
    else:
        frame_files = sorted(fp for pattern in IMAGE_PATTERNS
                             for fp in glob.glob(os.path.join(args.frames, pattern)))
        if not frame_files:
            raise SystemExit('No frames found.')
        print(f"Found {len(frame_files)} frames. Decoding...")
        feed_frames(session, frame_files)
        if session.last_error is not None:
            print(f"Last decoder error: {session.last_error}")

    if not write_streams(assembler, args.out):
        raise SystemExit('No complete stream reconstructed.')

if __name__ == '__main__':
    main()
