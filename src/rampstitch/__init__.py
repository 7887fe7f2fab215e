"""rampstitch — speed-curve retiming and multi-clip stitching.

Retime generated video clips along an easing curve, concatenate them into
one continuous timeline, and optionally lay a looped/faded audio track
underneath. Works in-process (moviepy + imageio-ffmpeg frame pipes) or
through the bundled ffmpeg executable (filter/LUT path).
"""
