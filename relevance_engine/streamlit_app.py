import os

import pandas as pd
import plotly.express as px
import requests
import streamlit as st

# Page configuration
st.set_page_config(
    page_title="Content Relevance Engine",
    page_icon="📰",
    layout="wide",
    initial_sidebar_state="expanded"
)

SENTIMENT_COLORS = {
    "Positive": "green",
    "Negative": "red",
    "Neutral": "gray",
    "Mixed": "orange",
    "Unknown": "lightgray",
    "Error": "purple",
}

# Get API base URL from environment or use default
DEFAULT_API_BASE = os.getenv("API_BASE_URL", "http://localhost:8080")

# Sidebar configuration
st.sidebar.title("⚙️ Configuration")
API_BASE = st.sidebar.text_input("API Base URL", DEFAULT_API_BASE)
USER_ID = st.sidebar.text_input("Acting user id", "alice")

# Check API health
try:
    health_resp = requests.get(f"{API_BASE}/health", timeout=5)
    if health_resp.ok:
        st.sidebar.success("✅ API Connected")
    else:
        st.sidebar.error("❌ API Error")
except requests.RequestException:
    st.sidebar.error("❌ API Unreachable")


def api(method: str, path: str, **kwargs):
    """Call the API as the acting user; returns the response or None on connection errors."""
    headers = {"X-User-Id": USER_ID}
    try:
        return requests.request(method, f"{API_BASE}/api/v1{path}", headers=headers, timeout=60, **kwargs)
    except requests.RequestException as e:
        st.error(f"Request failed: {e}")
        return None


def show_error(resp) -> None:
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    st.error(f"API error ({resp.status_code}): {detail}")


st.title("📰 Content Relevance Engine")
st.markdown("Publish posts, run multi-provider analysis and inspect each user's ranked feed")

tab1, tab2, tab3 = st.tabs(["📝 Publish & Analyze", "📊 Ranked Feed", "❤️ Preferences"])

# ==================== TAB 1: PUBLISH & ANALYZE ====================
with tab1:
    st.header("📝 Publish a Post")

    col1, col2 = st.columns([2, 1])
    with col1:
        content = st.text_area("Post content", max_chars=500, height=150)
        analyze_now = st.checkbox("Analyze right after publishing", value=True)
    with col2:
        st.markdown("### 👤 Users")
        new_username = st.text_input("Create user with this id", USER_ID)
        if st.button("Create user"):
            resp = api("POST", "/users", json={"id": new_username, "username": new_username})
            if resp is not None:
                if resp.ok:
                    st.success(f"✅ User {new_username} ready")
                else:
                    show_error(resp)
        follow_target = st.text_input("Follow user id")
        if st.button("Follow") and follow_target:
            resp = api("POST", f"/users/{USER_ID}/follow/{follow_target}")
            if resp is not None:
                if resp.ok:
                    st.success(f"✅ {USER_ID} now follows {follow_target}")
                else:
                    show_error(resp)

    if st.button("📤 Publish", type="primary", use_container_width=True):
        if content.strip():
            resp = api("POST", "/posts", json={"content": content})
            if resp is not None and resp.ok:
                post = resp.json()
                st.success(f"✅ Published post {post['id']}")
                if analyze_now:
                    with st.spinner("Analyzing post..."):
                        analysis_resp = api("POST", f"/analyze/{post['id']}")
                    if analysis_resp is not None:
                        if analysis_resp.ok:
                            st.json(analysis_resp.json()["analysis"])
                        else:
                            show_error(analysis_resp)
            elif resp is not None:
                show_error(resp)
        else:
            st.warning("Please enter some text to publish")

# ==================== TAB 2: RANKED FEED ====================
with tab2:
    st.header(f"📊 Feed for {USER_ID}")
    scope = st.radio("Scope", ["network", "global"], horizontal=True)

    resp = api("GET", "/feed", params={"scope": scope})
    if resp is not None and not resp.ok:
        show_error(resp)
    elif resp is not None:
        entries = resp.json()
        if not entries:
            st.info("No posts in this feed yet")
        else:
            df = pd.DataFrame([{
                "post_id": e["post"]["id"],
                "author": e["post"]["author_id"],
                "score": e["relevance_score"],
                "sentiment": e["post"]["analysis"]["sentiment"],
                "category": e["post"]["analysis"]["category"],
                "text": e["post"]["content"][:50] + "..." if len(e["post"]["content"]) > 50 else e["post"]["content"],
            } for e in entries])

            fig = px.bar(
                df, x="post_id", y="score", color="sentiment",
                color_discrete_map=SENTIMENT_COLORS, hover_data=["author", "category", "text"],
                title="Relevance score per post",
            )
            st.plotly_chart(fig, use_container_width=True)

            for entry in entries:
                post = entry["post"]
                analysis = post["analysis"]
                liked = USER_ID in post["likes"]
                with st.container():
                    st.markdown(
                        f"**{post['author_id']}** · score `{entry['relevance_score']:.2f}` · "
                        f"{analysis['sentiment']} · {analysis['category']}"
                        + (" · ⚠️ toxic" if analysis["toxicity"]["detected"] else "")
                    )
                    st.write(post["content"])
                    if analysis["topics"]:
                        st.caption("Topics: " + ", ".join(analysis["topics"]))
                    label = "💔 Unlike" if liked else "❤️ Like"
                    if st.button(f"{label} ({len(post['likes'])})", key=f"like-{post['id']}"):
                        like_resp = api("PUT", f"/posts/{post['id']}/like")
                        if like_resp is not None and like_resp.ok:
                            st.rerun()
                        elif like_resp is not None:
                            show_error(like_resp)
                    st.markdown("---")

# ==================== TAB 3: PREFERENCES ====================
with tab3:
    st.header(f"❤️ Learned preferences of {USER_ID}")
    resp = api("GET", f"/users/{USER_ID}/preferences")
    if resp is not None and not resp.ok:
        show_error(resp)
    elif resp is not None:
        profile = resp.json()
        col1, col2 = st.columns(2)
        for col, key, title in [
            (col1, "liked_categories", "Liked categories"),
            (col2, "liked_topics", "Liked topics"),
        ]:
            with col:
                counts = profile.get(key, {})
                if counts:
                    frame = pd.DataFrame(
                        sorted(counts.items(), key=lambda kv: kv[1], reverse=True),
                        columns=["name", "count"],
                    )
                    st.plotly_chart(px.bar(frame, x="name", y="count", title=title), use_container_width=True)
                else:
                    st.info(f"{title}: nothing yet")
