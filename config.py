"""
Configuration module for the Task Dependency Resolver.
Loads settings from environment variables or .env file.
任务依赖解析器配置模块。
从环境变量或 .env 文件加载所有配置项。
"""

import os
from dotenv import load_dotenv

load_dotenv()  # 自动读取项目根目录的 .env 文件（若存在），优先级低于系统环境变量

# --- Priority Scoring ---
# --- 优先级评分权重 ---
# Defaults only; the monotonic direction of each factor is what matters.
# 仅为默认值；每个因子的单调方向才是约定的部分。
PRIORITY_DEPENDENT_WEIGHT = float(os.getenv("PRIORITY_DEPENDENT_WEIGHT", "10"))  # 每个直接下游任务加的分数

PRIORITY_CRITICAL_POINTS = float(os.getenv("PRIORITY_CRITICAL_POINTS", "100"))  # critical 等级加分
PRIORITY_HIGH_POINTS = float(os.getenv("PRIORITY_HIGH_POINTS", "50"))           # high 等级加分
PRIORITY_MEDIUM_POINTS = float(os.getenv("PRIORITY_MEDIUM_POINTS", "25"))       # medium 等级加分
PRIORITY_LOW_POINTS = float(os.getenv("PRIORITY_LOW_POINTS", "10"))             # low 等级加分

PRIORITY_WAIT_UNIT_SECONDS = float(os.getenv("PRIORITY_WAIT_UNIT_SECONDS", "60"))  # 每等待多少秒加 1 分
PRIORITY_WAIT_CAP = float(os.getenv("PRIORITY_WAIT_CAP", "50"))                    # 等待时间加分上限，防止饿死

PRIORITY_ORDER_WEIGHT = float(os.getenv("PRIORITY_ORDER_WEIGHT", "1"))  # 拓扑序位置每靠前一位加的分数

# --- CLI Demo ---
# --- 命令行演示 ---
DEMO_SIMULATE = os.getenv("DEMO_SIMULATE", "false").lower() == "true"  # 是否默认模拟执行整个计划
