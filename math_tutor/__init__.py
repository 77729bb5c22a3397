from __future__ import annotations

from math_tutor.utils.env import load_project_dotenv

# `.env` values reach os.environ before any SDK client reads them.
load_project_dotenv()
