"""
漫剧剧本工坊 - 主程序
校验配置后启动 Web API
"""

import argparse
import logging
import os

from config import create_env_file, get_api_config, get_generation_config
from exceptions import ConfigurationError
from utils import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="漫剧剧本工坊 Web API")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"), help="监听地址")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")), help="监听端口")
    parser.add_argument("--reload", action="store_true", help="代码变更时自动重载")
    return parser.parse_args(argv)


def _print_welcome() -> None:
    """打印欢迎信息"""
    api_cfg = get_api_config()
    gen_cfg = get_generation_config()
    print("\n" + "=" * 60)
    print("🎬 漫剧剧本工坊 v1.0")
    print("=" * 60)
    print(f"🔧 客户端: {api_cfg.provider.upper()}  模型: {api_cfg.model_name}")
    print(f"📺 每批集数: {gen_cfg.episodes_per_batch}  假定总集数: {gen_cfg.assumed_total_episodes}")
    print(f"💾 数据目录: {gen_cfg.data_dir}")
    print("=" * 60 + "\n")


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()

    try:
        get_api_config().validate()
        get_generation_config().validate()
    except ConfigurationError as e:
        print(f"\n❌ 配置错误: {e}")
        print("\n💡 请检查环境变量或.env文件中的配置")
        return 1

    if not os.getenv("API_KEY") and create_env_file():
        print("⚠️  未检测到 API_KEY，已创建 .env 模板，请填入密钥后再生成内容")

    _print_welcome()

    import uvicorn

    uvicorn.run("web_api:app", host=args.host, port=args.port, reload=args.reload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
