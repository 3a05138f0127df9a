from pathlib import Path

prodos_base_path = Path(__file__).parent
