#!/usr/bin/env python3
"""
실시간 협업 서비스 테스트 실행 스크립트

Usage:
    python run_tests.py                # 모든 테스트 실행
    python run_tests.py --unit         # 단위 테스트만 실행 (소켓/DB 없음)
    python run_tests.py --integration  # FastAPI 앱을 띄우는 통합 테스트
    python run_tests.py --coverage     # 커버리지 포함하여 실행
    python run_tests.py --install      # pip install -e .[test]
"""

import sys
import subprocess
import argparse
from pathlib import Path

PYTEST = [sys.executable, "-m", "pytest", "-v", "--tb=short"]

SUITES = {
    "unit": (["tests/unit/"], "단위 테스트 (방 레지스트리, 라우터, 알림)"),
    "integration": (["tests/integration/"], "통합 테스트 (WebSocket 흐름, 내부 API)"),
    "quick": (["tests/", "-x"], "빠른 테스트 (실패 시 중단)"),
    "coverage": (
        ["tests/", "--cov=app", "--cov-report=term-missing", "--cov-report=html:htmlcov"],
        "커버리지 포함 테스트",
    ),
    "all": (["tests/"], "전체 테스트"),
}


def run_command(cmd, description=""):
    """명령어 실행"""
    print(f"\n{'='*60}")
    print(f"🚀 {description}")
    print(f"{'='*60}")
    print(f"실행 명령어: {' '.join(cmd)}")
    print()

    try:
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        print(f"\n❌ {description} 실패! (exit code: {e.returncode})")
        return False

    print(f"\n✅ {description} 성공!")
    return True


def install_dependencies():
    """패키지와 테스트 의존성 설치"""
    return run_command(
        [sys.executable, "-m", "pip", "install", "-e", ".[test]"],
        "테스트 의존성 설치"
    )


def run_suite(name):
    args, description = SUITES[name]
    success = run_command(PYTEST + args, description)
    if success and name == "coverage":
        print("\n📊 커버리지 리포트가 htmlcov/index.html에 생성되었습니다.")
    return success


def main():
    parser = argparse.ArgumentParser(description="실시간 협업 서비스 테스트 실행")
    parser.add_argument("--install", action="store_true", help="의존성 설치")
    suite = parser.add_mutually_exclusive_group()
    for name in ("unit", "integration", "coverage", "quick"):
        suite.add_argument(f"--{name}", action="store_const", const=name, dest="suite")
    parser.set_defaults(suite="all")

    args = parser.parse_args()

    project_root = Path(__file__).parent
    print(f"📁 프로젝트 디렉토리: {project_root.absolute()}")

    success = True
    if args.install:
        success &= install_dependencies()
    success &= run_suite(args.suite)

    print(f"\n{'='*60}")
    if success:
        print("🎉 모든 테스트가 통과했습니다!")
        print("✅ 프로젝트 방 실시간 팬아웃이 올바르게 작동합니다.")
    else:
        print("💥 일부 테스트가 실패했습니다.")
        print("❌ 로그를 확인하여 문제를 해결해주세요.")
    print(f"{'='*60}")

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
