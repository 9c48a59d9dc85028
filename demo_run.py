"""象信AI安全护栏使用示例。

在运行此示例之前，请确保：
1. 已在 .env 文件中配置 XIANGXINAI_API_KEY（可选 XIANGXINAI_BASE_URL）
2. 已安装依赖：pip install -e .
3. 将 IMAGE_PATH 修改为实际的图片路径
"""

from xiangxinai import XiangxinAI, XiangxinAIError, configure_logging, load_env_file

configure_logging(level="DEBUG")

# 加载环境变量
load_env_file()

IMAGE_PATH = "temp/image.jpg"

with XiangxinAI.from_env() as client:
    print(client.health_check())
    print(client.get_models())

    # 示例 1: 检测用户输入
    result = client.check_prompt("我想学习编程")
    print(result.overall_risk_level, result.suggest_action)

    # 示例 2: 检测对话上下文
    messages = [
        {"role": "user", "content": "教我做饭"},
        {"role": "assistant", "content": "我可以教你做一些简单的家常菜"},
    ]
    result = client.check_conversation(messages, user_id="demo-user")
    print(result.overall_risk_level, result.all_categories)

    # 示例 3: 基于上下文检测模型输出
    result = client.check_response_ctx("教我做饭", "我可以教你做一些简单的家常菜")
    print(result.is_safe)

    # 示例 4: 图文检测
    try:
        result = client.check_prompt_image("这张图片安全吗？", IMAGE_PATH)
        print(result.overall_risk_level, result.suggest_answer)
    except XiangxinAIError as e:
        print(f"图片检测失败: {e}")
