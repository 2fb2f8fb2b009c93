"""护眼监测 Web 服务启动脚本：检查运行环境后启动 Flask API"""

import argparse
import importlib.util
import logging
import os
import sys

ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ROOT)

logger = logging.getLogger("start")

# 发行包名 -> 导入名
REQUIRED_PACKAGES = {
    "flask": "flask",
    "opencv-python": "cv2",
    "mediapipe": "mediapipe",
    "numpy": "numpy",
    "plyer": "plyer",
    "Pillow": "PIL",
}


def find_missing_packages():
    """返回未安装的发行包名列表"""
    return [
        dist for dist, module in REQUIRED_PACKAGES.items()
        if importlib.util.find_spec(module) is None
    ]


def prepare_store(path):
    """
    确保存储文件所在目录存在且可写，返回绝对路径。

    Raises:
        OSError: 目录无法创建或不可写
    """
    path = os.path.abspath(path)
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    if not os.access(directory, os.W_OK):
        raise OSError(f"存储目录不可写: {directory}")
    return path


def main(argv=None):
    parser = argparse.ArgumentParser(description="护眼眨眼监测 Web 服务")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--store", default=os.environ.get("EYECARE_STORE", os.path.join(ROOT, "data", "eyecare.json")))
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    missing = find_missing_packages()
    if missing:
        logger.error("缺少依赖: %s，请先执行 pip install -e .", ", ".join(missing))
        return 1

    try:
        store_path = prepare_store(args.store)
    except OSError as e:
        logger.error("%s", e)
        return 1

    # web_app 在导入时按该变量创建存储
    os.environ["EYECARE_STORE"] = store_path

    from web_app import app

    base = f"http://{args.host}:{args.port}"
    logger.info("会话数据: %s", store_path)
    for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
        if rule.endpoint != "static":
            logger.info("  %s %s%s", ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"})), base, rule.rule)

    app.run(host=args.host, port=args.port, debug=False, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
