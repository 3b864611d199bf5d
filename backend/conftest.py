"""
pytest 测试配置入口
在任何测试模块加载之前设置环境变量，并从 tests/test_conftest.py 导入所有 fixtures。
"""

import os
import base64
import tempfile

# 在导入任何其他模块之前设置测试环境变量
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["IDENTITY_JWT_KEY"] = "photoshare-test-session-key"
os.environ["IDENTITY_JWT_ALGORITHM"] = "HS256"
os.environ["IDENTITY_WEBHOOK_SECRET"] = "whsec_" + base64.b64encode(b"photoshare-test-webhook-secret").decode()
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="photoshare-uploads-"))

# 从 test_conftest.py 导入所有 fixtures
from tests.test_conftest import *
