import os


def get_data_dir():
    # INSPOVAULT_DATA_DIR wins so several libraries can live side by side.
    base = os.environ.get("INSPOVAULT_DATA_DIR", "").strip()
    if base:
        data_dir = base
    else:
        data_dir = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "inspovault-data")
    os.makedirs(data_dir, exist_ok=True)
    return data_dir


def get_db_path():
    return os.path.join(get_data_dir(), "inspovault.db")
