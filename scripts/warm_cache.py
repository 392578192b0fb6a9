#!/usr/bin/env python3
"""预热联赛缓存（建议配合 redis 缓存后端，由定时任务调用）"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.data_pipeline.cache_warmer import CacheWarmer
from src.services.league_data_manager import create_league_data_manager
from src.shared.config import get_settings


async def warm(leagues):
    manager = create_league_data_manager(get_settings())
    try:
        stats = await CacheWarmer(manager).run(leagues or None)
    finally:
        await manager.aclose()

    print(f"\n[OK] 成功 {stats['refreshed']} 个联赛，失败 {stats['failed']} 个")
    for league_code, error in stats["errors"].items():
        print(f"  - {league_code}: {error}")
    return 1 if stats["failed"] else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="预热联赛缓存")
    parser.add_argument("leagues", nargs="*", help="联赛代码，如 PL CL；默认全部")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    sys.exit(asyncio.run(warm(args.leagues)))
