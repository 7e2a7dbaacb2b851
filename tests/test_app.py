from streamlit.testing.v1 import AppTest


def _flash_script():
    import streamlit as st

    import app

    if "step" not in st.session_state:
        st.session_state.step = 1
        app.flash("Renewed until 2025-03-15.")
    else:
        app.show_flash()


def test_flash_message_is_shown_once_on_the_next_run():
    at = AppTest.from_function(_flash_script, default_timeout=30)

    at.run()
    assert len(at.success) == 0

    at.run()
    assert [s.value for s in at.success] == ["Renewed until 2025-03-15."]

    at.run()
    assert len(at.success) == 0
