"""
PES demultiplexing package.

Pure Python extraction of elementary streams from raw PES capture files:

- pes_parser: Start code scanning, stream id classification, PES header
  decoding and payload boundary resolution
- pes_demuxer: Single-pass demuxer that routes payloads into per-stream
  accumulators
- elementary_muxer: PyAV-based stream copy of the extracted H.264 and A-law
  streams into a playable container
"""
