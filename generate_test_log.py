"""Generate a synthetic Betaflight blackbox CSV with a known bad tune.

Roll overshoots (~28%), pitch is under-damped (~18%), yaw is sluggish
(~140ms rise).  See ``stepscope.demo`` for how the signals are built.

Outputs: test_flight.csv (12 seconds at 2kHz)
"""
import os

from stepscope.demo import generate_demo_flight, write_demo_csv


OUT_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "test_flight.csv")


def main():
    data = generate_demo_flight(sample_rate=2000, duration_s=12.0)
    print(f"Generating {data.duration_seconds:.1f}s flight log at "
          f"{data.sample_rate_hz:.0f}Hz ({data.frame_count} samples)...")
    write_demo_csv(data, OUT_PATH)

    file_size_mb = os.path.getsize(OUT_PATH) / (1024 * 1024)
    print(f"  Done! {file_size_mb:.1f} MB, {data.frame_count} rows")
    print(f"  Output: {OUT_PATH}")


if __name__ == "__main__":
    main()
