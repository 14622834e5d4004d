from faker import Faker
from faker.providers import BaseProvider


class LotwiseProvider(BaseProvider):
    """
    LOTWISE 演示数据生成器
    生成消费品制造场景的原料、包材、成品名称
    """

    # 原料
    raw_materials = [
        '乳木果油', '椰子油', '甜杏仁油', '蜂蜡', '荷荷巴油', '薰衣草精油',
        '甘油', '柠檬酸', '小苏打', '燕麦粉', '维生素E', '芦荟胶',
    ]

    # 包材
    packaging_items = [
        '玻璃瓶 50ml', '铝盖', '标签贴', 'PET 罐 100g', '纸盒', '泵头', '收缩膜',
    ]

    # 成品前缀 / 后缀
    product_prefixes = ['晨露', '山茶', '海盐', '雪松', '蜜桃', '青柠', '琥珀']
    product_suffixes = ['身体乳', '护手霜', '手工皂', '润唇膏', '沐浴油', '磨砂膏']

    vendor_suffixes = ['原料', '包装', '化工', '贸易', '供应链']

    websites = ['shop-main', 'shop-outlet', 'marketplace']

    def raw_material(self):
        return self.random_element(self.raw_materials)

    def packaging_item(self):
        return self.random_element(self.packaging_items)

    def finished_good(self):
        """生成成品名"""
        return f"{self.random_element(self.product_prefixes)}{self.random_element(self.product_suffixes)}"

    def vendor_name(self):
        prefix = self.generator.last_name()  # 使用 Faker 内置的姓氏作为公司名
        return f"{prefix}{self.random_element(self.vendor_suffixes)}"

    def web_store(self):
        return self.random_element(self.websites)


# 初始化 Faker 并添加自定义 Provider
fake = Faker('zh_CN')
fake.add_provider(LotwiseProvider)
