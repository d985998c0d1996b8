"""CLI 入口模块 -- python -m taskpulse.core <command>

支持的命令：
  demo [seconds]  运行一段带埋点的示例负载，每个 tick 输出任务报告
"""

import asyncio
import random
import sys

from .config import load_collector_config
from .instrument import AsyncioInstrumentation
from .logging_config import setup_logging
from .recorder import MetricsRecorder


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m taskpulse.core <command>")
        print("命令:")
        print("  demo [seconds]  运行带埋点的示例负载")
        sys.exit(1)

    command = sys.argv[1]

    if command == "demo":
        seconds = 5.0
        if len(sys.argv) > 2:
            try:
                seconds = float(sys.argv[2])
            except ValueError:
                print(f"无效的时长: {sys.argv[2]}")
                sys.exit(1)
        setup_logging()
        asyncio.run(run_demo(seconds))
    else:
        print(f"未知命令: {command}")
        print("可用命令: demo")
        sys.exit(1)


async def _worker(index: int, deadline: float) -> int:
    """示例负载：交替执行 CPU 工作和 sleep"""
    loop = asyncio.get_running_loop()
    rounds = 0
    while loop.time() < deadline:
        sum(i * i for i in range(2000 * (index + 1)))
        await asyncio.sleep(random.uniform(0.05, 0.3))
        rounds += 1
    return rounds


async def run_demo(seconds: float) -> None:
    """执行示例负载"""
    recorder = MetricsRecorder(load_collector_config())
    recorder.start()

    instrumentation = AsyncioInstrumentation(recorder.source)
    instrumentation.install()

    loop = asyncio.get_running_loop()
    deadline = loop.time() + seconds
    try:
        workers = [
            asyncio.create_task(_worker(i, deadline), name=f"worker-{i}")
            for i in range(4)
        ]
        await asyncio.gather(*workers)
    finally:
        instrumentation.uninstall()
        recorder.close()
        await recorder.run()


if __name__ == "__main__":
    main()
