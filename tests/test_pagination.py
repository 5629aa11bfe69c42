from agora.services.pagination import Page


class TestPage:
    def test_defaults(self):
        page = Page()
        assert page.page == 1
        assert page.limit == 20
        assert page.offset == 0

    def test_offset(self):
        assert Page(page=3, limit=10).offset == 20

    def test_limit_is_clamped(self):
        assert Page(limit=1000).limit == 100
        assert Page(limit=0).limit == 1
        assert Page(limit=-5).limit == 1

    def test_page_floor(self):
        assert Page(page=0).page == 1
        assert Page(page=-2).offset == 0

    def test_has_more_is_full_page(self):
        page = Page(limit=2)
        assert page.has_more([1, 2]) is True
        assert page.has_more([1]) is False
        assert page.has_more([]) is False
