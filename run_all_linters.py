#!/usr/bin/env python3
"""執行所有 linter、格式檢查與單元測試。

依序執行 Black、isort、Ruff、Pylint 與 pytest，最後輸出總結報告。
加上 ``--fast`` 可略過 Pylint。
"""

from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).parent
SOURCES = ["core", "infrastructure", "main.py"]


def run_command(cmd: list[str], description: str) -> tuple[bool, str]:
    """執行命令並返回成功狀態和輸出。"""
    print(f"\n{'=' * 60}")
    print(f"執行: {description}")
    print(f"命令: {' '.join(cmd)}")
    print("=" * 60)

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=ROOT)
    except OSError as e:
        print(f"❌ 執行錯誤: {e}")
        return False, str(e)

    success = result.returncode == 0
    output = result.stdout + result.stderr
    print("✅ 成功" if success else "❌ 失敗")
    if output.strip():
        print("\n輸出:")
        print(output)
    return success, output


def build_commands(fast: bool) -> list[tuple[list[str], str]]:
    py = sys.executable
    commands = [
        ([py, "-m", "black", *SOURCES, "tests", "--check"], "Black 格式化檢查"),
        ([py, "-m", "isort", *SOURCES, "tests", "--check-only"], "isort 匯入排序檢查"),
        ([py, "-m", "ruff", "check", *SOURCES, "tests"], "Ruff 靜態檢查"),
    ]
    if not fast:
        commands.append(([py, "-m", "pylint", *SOURCES], "Pylint 靜態分析"))
    commands.append(([py, "-m", "pytest", "-q"], "pytest 單元測試"))
    return commands


def main() -> None:
    fast = "--fast" in sys.argv[1:]
    results = [(desc, *run_command(cmd, desc)) for cmd, desc in build_commands(fast)]

    print(f"\n{'=' * 60}")
    print("總結報告")
    print("=" * 60)
    failed = [(desc, output) for desc, success, output in results if not success]
    for desc, success, _ in results:
        print(f"{desc}: {'✅ 通過' if success else '❌ 失敗'}")

    print(f"\n整體結果: {'❌ 有錯誤' if failed else '✅ 全部通過'}")
    for desc, output in failed:
        if output.strip():
            print(f"\n--- {desc} 錯誤 ---")
            print(output)

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
