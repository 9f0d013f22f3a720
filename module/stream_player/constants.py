"""
串流播放器常數

所有可調整的數值集中在這裡，config.py 會以這些值作為環境變數的預設值。
"""

# ==================== 網路 ====================

API_BASE_URL = "https://pipedapi.kavin.rocks"
REQUEST_TIMEOUT = 15.0          # 每次嘗試的超時（秒）
REQUEST_MAX_ATTEMPTS = 3        # 含第一次的總嘗試次數
REQUEST_BACKOFF_STEP = 1.0      # 第 n 次失敗後等待 n * STEP 秒
DEFAULT_SEARCH_FILTER = "music_songs"
DEFAULT_REGION = "US"
RELATED_LIMIT = 10

# ==================== 解析預設值 ====================

DEFAULT_TITLE = "Unknown Title"
DEFAULT_ARTIST = "Unknown Artist"

# ==================== 快取 ====================

CACHE_TTL = 300                 # 秒
MAX_CACHE = 20

# ==================== 儲存 ====================

DATA_PATH = "./data/store.json"
STORAGE_QUOTA = 5 * 1024 * 1024  # bytes
MAX_HISTORY = 50

DEFAULT_SETTINGS = {
    "volume": 100,
    "shuffle": False,
    "repeat": "off",
    "quality": "medium",
    "theme": "dark",
}

# ==================== 播放 ====================

POSITION_SAVE_INTERVAL = 5.0    # 秒
PREVIOUS_RESTART_THRESHOLD = 3  # 超過此秒數按「上一首」改為重新播放
TIME_UPDATE_INTERVAL = 1.0
VOLUME_MIN = 0
VOLUME_MAX = 100

# ==================== FFplay ====================

FFPLAY_BINARY = "ffplay"
FFPLAY_DOWNLOAD_ATTEMPTS = 3
FFPLAY_DOWNLOAD_TIMEOUT = 300
