class Constant:
    DEFAULT_SAMPLERATE = 44100
    DEFAULT_BITDEPTH = 16
    DEFAULT_CHANNELS = 1
    # Vital-style defaults (2048 samples per frame, 64 frames)
    DEFAULT_FRAME_SIZE = 2048
    DEFAULT_NUM_FRAMES = 64

    # Configuration bounds
    MIN_NUM_FRAMES = 4
    MAX_NUM_FRAMES = 256
    MIN_FRAME_SIZE = 256
    MAX_FRAME_SIZE = 8192

    # Morphing defaults
    DEFAULT_MAX_MORPH_SAMPLES = 10
    DEFAULT_FULL_SAMPLE_PROBABILITY = 0.3
    DEFAULT_EXPERIMENTAL_PROBABILITY = 0.0

    # WAV parsing
    MAX_CHUNK_SCAN = 16
    PCM16_SCALE = 32767

    # Output
    DEFAULT_OUTPUT_DIR = "wavetables"
    SINGLECYCLE_OUTPUT_DIR = "singlecycles"
    MORPH_OUTPUT_DIR = "morphs"
    TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
    SOUND_FILE_EXTENSIONS = (".wav", ".aif", ".aiff", ".flac", ".ogg")
