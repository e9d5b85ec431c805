"""Configuration settings for the File Store server."""
import os

# Directory paths
STORAGE_ROOT = os.getenv("FILE_STORE_ROOT", "./Storage")
TEMP_DIR = os.getenv("FILE_STORE_TEMP_DIR", "./temp")  # must share a filesystem with STORAGE_ROOT
LOG_DIR = os.getenv("FILE_STORE_LOG_DIR", "./logs")

# Streaming
CHUNK_SIZE = int(os.getenv("FILE_STORE_CHUNK_SIZE", 8192))  # 8KB

# Logging
LOG_LEVEL = os.getenv("FILE_STORE_LOG_LEVEL", "INFO")

# Server
HOST = os.getenv("FILE_STORE_HOST", "0.0.0.0")
PORT = int(os.getenv("FILE_STORE_PORT", 8000))
